# repository/namespaces.py
from typing import Final

ROOT: Final[str] = "fileup"

# Broker keys are further scoped by project id
TOPICS: Final[str] = f"{ROOT}:topics"  # registry set per project
TOPIC_STREAMS: Final[str] = f"{ROOT}:topic"  # one stream per topic
SUBSCRIPTIONS: Final[str] = f"{ROOT}:subscriptions"  # registry hash per project

# Local object store
BUCKETS: Final[str] = f"{ROOT}:buckets"
OBJECTS: Final[str] = f"{ROOT}:objects"
OBJECT_INDEX: Final[str] = f"{ROOT}:bucket-index"  # zset key -> last modified
