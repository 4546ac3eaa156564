# util/functions.py
from typing import Iterable


def matches_label(labels: Iterable[str], target: str) -> bool:
    """
    True when any label contains `target` as a case-sensitive substring.
    """
    return any(target in label for label in labels)


def clip(text: str, max_chars: int = 200) -> str:
    """
    Trim message payloads before they go into log lines.
    """
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + " …"
