# service/archiver_service.py
import logging
from typing import Optional
from core.entities import BrokerMessage
from model.notification import LabeledImage
from repository.archive_repository import ArchiveRepository
from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository
from service.stage_service import WorkerService
from util.enums import ServiceRole
from util.errors import MalformedMessageError, ObjectNotFoundError
from util.functions import matches_label
from util.timing import timed

logger = logging.getLogger(__name__)


class ArchiverService(WorkerService):
    """
    Copies labeled images whose labels contain the target label to the durable
    store, then (optionally) asks the purger to drop the local copy.

    Each archiver instance owns its subscription, so several archivers with
    different targets can read the same labeled topic independently.
    """

    role = ServiceRole.ARCHIVER

    def __init__(
        self,
        broker: BrokerRepository,
        store: ObjectStoreRepository,
        archive: ArchiveRepository,
        *,
        labeled_topic: str,
        subscription: str,
        consumer_name: str,
        target_label: str,
        archive_bucket: str,
        purge_topic: Optional[str] = None,
        **worker_opts,
    ) -> None:
        super().__init__(
            broker,
            store,
            topic=labeled_topic,
            subscription=subscription,
            consumer_name=consumer_name,
            **worker_opts,
        )
        if not target_label:
            raise ValueError("target_label must not be empty")
        self._archive = archive
        self._target = target_label
        self._archive_bucket = archive_bucket
        self._purge_topic = purge_topic

    async def setup(self) -> None:
        await super().setup()
        if self._purge_topic:
            await self._broker.ensure_topic(self._purge_topic)

    async def handle(self, message: BrokerMessage) -> None:
        try:
            labeled = LabeledImage.decode(message.data)
        except MalformedMessageError as e:
            logger.error("archive.bad_message id=%s err=%s", message.id, e)
            return

        location = labeled.object_location
        if not matches_label(labeled.labels, self._target):
            logger.debug(
                "archive.skip location=%s target=%s labels=%s",
                location,
                self._target,
                labeled.labels,
            )
            return

        try:
            data = await self._store.get_object(location.bucket, location.key)
        except ObjectNotFoundError:
            logger.warning("archive.object.missing location=%s", location)
            return

        with timed(logger, "archive.write", location=location, bytes=len(data)):
            await self._archive.write_object(self._archive_bucket, location.key, data)

        if self._purge_topic:
            await self._broker.publish(self._purge_topic, str(location).encode("utf-8"))
            logger.info("archive.purge.requested location=%s", location)

    async def prestop(self) -> None:
        """Stop consuming and delete this instance's subscription (best effort)."""
        await self.stop_consuming()
        try:
            await self._broker.delete_subscription(self._subscription)
        except Exception as e:
            logger.error("prestop.subscription.error sub=%s err=%s", self._subscription, e)
