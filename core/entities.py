# core/entities.py
from dataclasses import dataclass
from util.errors import MalformedMessageError

_LOCATION_SEP = "/"
_RESERVED_KEYS = {".", ".."}


@dataclass(frozen=True)
class ObjectLocation:
    """
    Address of an image in the local object store; wire form "<bucket>/<key>".
    """

    bucket: str
    key: str

    @classmethod
    def parse(cls, raw: str) -> "ObjectLocation":
        parts = raw.split(_LOCATION_SEP)
        if len(parts) != 2:
            raise MalformedMessageError(
                f"location must have format <bucket>/<object> [{raw}]"
            )
        bucket, key = parts
        if not bucket or not key:
            raise MalformedMessageError(f"location has an empty segment [{raw}]")
        if key in _RESERVED_KEYS:
            raise MalformedMessageError(f"location key is not allowed [{raw}]")
        if "\x00" in raw:
            raise MalformedMessageError(f"location contains a NUL byte [{raw!r}]")
        return cls(bucket=bucket, key=key)

    def __str__(self) -> str:
        return f"{self.bucket}{_LOCATION_SEP}{self.key}"


@dataclass
class ObjectInfo:
    key: str
    size: int
    last_modified: float  # epoch seconds


@dataclass
class BrokerMessage:
    id: str  # stream entry id, unique within the topic
    topic: str
    subscription: str
    data: bytes
    redelivered: bool = False

    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")
