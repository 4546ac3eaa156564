# service/labeler_service.py
import logging
from core.annotation_client import AnnotationClient
from core.entities import BrokerMessage, ObjectLocation
from model.notification import LabeledImage
from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository
from service.stage_service import WorkerService
from util.constants import ANNOTATION_MAX_RESULTS
from util.enums import ServiceRole
from util.errors import MalformedMessageError, ObjectNotFoundError
from util.functions import clip

logger = logging.getLogger(__name__)


class LabelerService(WorkerService):
    """
    Consumes image-notifications, asks the annotation service for the top
    labels and publishes a labeled-notification. Every step is safe to repeat
    on redelivery.
    """

    role = ServiceRole.LABELER

    def __init__(
        self,
        broker: BrokerRepository,
        store: ObjectStoreRepository,
        annotator: AnnotationClient,
        *,
        image_topic: str,
        labeled_topic: str,
        subscription: str,
        consumer_name: str,
        max_labels: int = ANNOTATION_MAX_RESULTS,
        **worker_opts,
    ) -> None:
        super().__init__(
            broker,
            store,
            topic=image_topic,
            subscription=subscription,
            consumer_name=consumer_name,
            **worker_opts,
        )
        self._annotator = annotator
        self._labeled_topic = labeled_topic
        self._max_labels = max_labels

    async def setup(self) -> None:
        await super().setup()
        await self._broker.ensure_topic(self._labeled_topic)

    async def handle(self, message: BrokerMessage) -> None:
        raw = message.text()
        try:
            location = ObjectLocation.parse(raw)
        except MalformedMessageError as e:
            logger.error("label.bad_message id=%s err=%s", message.id, e)
            return

        try:
            image = await self._store.get_object(location.bucket, location.key)
        except ObjectNotFoundError:
            # Already purged or swept; it will not come back
            logger.warning("label.object.missing location=%s", location)
            return

        labels = await self._annotator.annotate_labels(image, max_results=self._max_labels)
        if not labels:
            logger.info("label.none location=%s", location)
            return

        payload = LabeledImage(location=str(location), labels=labels).encode()
        published = await self._broker.publish(self._labeled_topic, payload)
        logger.info(
            "label.published message=%s topic=%s data=%s",
            published,
            self._labeled_topic,
            clip(payload.decode("utf-8")),
        )

    async def shutdown(self) -> None:
        await super().shutdown()
        await self._annotator.aclose()
