# service/receiver_service.py
import time
from typing import Callable, Optional
import logging
from starlette.datastructures import UploadFile
from core.entities import ObjectLocation
from core.periodic import PeriodicTask
from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository
from service.stage_service import StageService
from util.constants import RETENTION_WINDOW_SECONDS, SWEEP_INTERVAL_SECONDS
from util.enums import ErrorMessage, ServiceRole
from util.errors import MalformedMessageError, UploadError

logger = logging.getLogger(__name__)


class ReceiverService(StageService):
    """
    Ingress stage. Owns the local bucket: creates it on start, sweeps expired
    objects on a timer, drains and removes it on pre-stop.
    """

    role = ServiceRole.RECEIVER

    def __init__(
        self,
        store: ObjectStoreRepository,
        broker: BrokerRepository,
        *,
        bucket: str,
        topic: str,
        retention_seconds: float = RETENTION_WINDOW_SECONDS,
        sweep_interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._broker = broker
        self._bucket = bucket
        self._topic = topic
        self._retention = retention_seconds
        self._clock = clock
        self._sweep = PeriodicTask("sweep", sweep_interval_seconds, self.purge_expired)

    async def start(self) -> None:
        if await self._store.make_bucket(self._bucket):
            logger.info("bucket.created bucket=%s", self._bucket)
        await self._broker.ensure_topic(self._topic)
        self._sweep.start()

    async def shutdown(self) -> None:
        await self._sweep.stop()

    async def receive_upload(self, file: UploadFile) -> str:
        """
        Write the upload to the bucket, check its size, then publish the
        image-notification and wait for the broker's message id.
        Returns the stored filename. Raises UploadError; nothing is rolled back.
        """
        filename = file.filename or ""
        try:
            location = ObjectLocation.parse(f"{self._bucket}/{filename}")
        except MalformedMessageError as e:
            logger.error("upload.filename.invalid name=%r", filename)
            raise UploadError.of(ErrorMessage.FORM_PARSE_FAILED, e)

        try:
            data = await file.read()
        except Exception as e:
            logger.error("upload.read.error name=%s err=%s", filename, e)
            raise UploadError.of(ErrorMessage.FORM_PARSE_FAILED, e)
        declared = file.size if file.size is not None else len(data)

        try:
            written = await self._store.put_object(location.bucket, location.key, data)
        except Exception as e:
            logger.error("upload.persist.error location=%s err=%s", location, e)
            raise UploadError.of(ErrorMessage.UPLOAD_FAILED, e)

        if written != declared:
            logger.error(
                "upload.incomplete location=%s wrote=%d wanted=%d", location, written, declared
            )
            raise UploadError.of(
                ErrorMessage.UPLOAD_INCOMPLETE, f"wrote {written} wanted {declared}"
            )

        try:
            message_id = await self._broker.publish(self._topic, str(location).encode("utf-8"))
        except Exception as e:
            logger.error("upload.notify.error topic=%s location=%s err=%s", self._topic, location, e)
            raise UploadError.of(
                ErrorMessage.NOTIFICATION_FAILED, e, detail=f"for topic {self._topic}"
            )

        logger.info(
            "upload.ok location=%s bytes=%d message=%s", location, written, message_id
        )
        return location.key

    async def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Delete every object older than the retention window, processed or not.
        Returns how many objects were removed.
        """
        now = self._clock() if now is None else now
        logger.info("sweep.start bucket=%s", self._bucket)
        removed = 0
        for obj in await self._store.list_objects(self._bucket):
            if now - obj.last_modified <= self._retention:
                continue
            try:
                await self._store.remove_object(self._bucket, obj.key)
            except Exception as e:
                logger.error("sweep.remove.error key=%s/%s err=%s", self._bucket, obj.key, e)
                continue
            removed += 1
            logger.info("sweep.removed key=%s/%s", self._bucket, obj.key)
        return removed

    async def ready(self) -> bool:
        try:
            return await self._store.ping() and await self._store.bucket_exists(self._bucket)
        except Exception as e:
            logger.warning("ready.check.error bucket=%s err=%s", self._bucket, e)
            return False

    async def prestop(self) -> None:
        """Best effort: empty the bucket and remove it. Failures are logged only."""
        try:
            objects = await self._store.list_objects(self._bucket)
        except Exception as e:
            logger.error("prestop.list.error bucket=%s err=%s", self._bucket, e)
            return
        for obj in objects:
            try:
                await self._store.remove_object(self._bucket, obj.key)
            except Exception as e:
                logger.error("prestop.remove.error key=%s/%s err=%s", self._bucket, obj.key, e)
        try:
            await self._store.remove_bucket(self._bucket)
            logger.info("prestop.bucket.removed bucket=%s", self._bucket)
        except Exception as e:
            logger.error("prestop.bucket.error bucket=%s err=%s", self._bucket, e)
