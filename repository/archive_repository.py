# repository/archive_repository.py
import os
import uuid
from pathlib import Path
import aiofiles
import aiofiles.os
from util.errors import ArchiveError

_RESERVED = {"", ".", ".."}


class ArchiveRepository:
    """
    Durable object store on a filesystem tree: <root>/<bucket>/<key>.

    Writes go to a temporary sibling and are renamed into place, so a key is
    either absent or complete and re-archiving the same key simply overwrites.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, bucket: str, key: str) -> Path:
        for part in (bucket, key):
            if part in _RESERVED or any(c in part for c in ("/", os.sep, "\x00")):
                raise ArchiveError(f"invalid archive path segment [{part}]")
        return self._root / bucket / key

    async def write_object(self, bucket: str, key: str, data: bytes) -> int:
        target = self._path(bucket, key)
        tmp = target.with_name(f".{target.name}.{uuid.uuid4().hex}.part")
        try:
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            async with aiofiles.open(tmp, "wb") as out:
                await out.write(data)
                await out.flush()
            await aiofiles.os.replace(tmp, target)
        except OSError as e:
            try:
                await aiofiles.os.remove(tmp)
            except OSError:
                pass
            raise ArchiveError(f"unable to write {bucket}/{key}: {e}") from e
        return len(data)

