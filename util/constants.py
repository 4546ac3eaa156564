# util/constants.py
from typing import Final


class InternalURIs:
    RECEIVE = "/receive"
    ALIVE = "/_alive"
    READY = "/_ready"
    PRESTOP = "/_prestop"


ACK_DEADLINE_SECONDS: Final[int] = 60
RETENTION_WINDOW_SECONDS: Final[int] = 5 * 60
SWEEP_INTERVAL_SECONDS: Final[int] = 5 * 60
ANNOTATION_MAX_RESULTS: Final[int] = 3
