# service/factory.py
from redis.asyncio import Redis
from config.settings import Settings
from core.annotation_client import AnnotationClient
from repository.archive_repository import ArchiveRepository
from repository.broker_repository import BrokerRepository
from repository.object_store_repository import ObjectStoreRepository
from service.archiver_service import ArchiverService
from service.labeler_service import LabelerService
from service.purger_service import PurgerService
from service.receiver_service import ReceiverService
from service.stage_service import StageService
from util.enums import ServiceRole


def build_service(cfg: Settings, broker_client: Redis, store_client: Redis) -> StageService:
    """Construct the stage selected by cfg.SERVICE_ROLE. Nothing is started here."""
    role = cfg.SERVICE_ROLE
    broker = BrokerRepository(
        broker_client, cfg.PROJECT_ID, stream_maxlen=cfg.STREAM_MAXLEN or None
    )
    store = ObjectStoreRepository(store_client)

    if role == ServiceRole.RECEIVER:
        return ReceiverService(store, broker, bucket=cfg.BUCKET, topic=cfg.IMAGE_TOPIC)

    worker_opts = {
        "consumer_name": cfg.POD_NAME,
        "subscription": cfg.subscription_for(role),
        "concurrency": cfg.HANDLER_CONCURRENCY,
        "batch_size": cfg.PULL_BATCH_SIZE,
        "block_ms": cfg.PULL_BLOCK_MS,
    }

    if role == ServiceRole.LABELER:
        annotator = AnnotationClient(
            cfg.ANNOTATION_API_URL,
            api_key=cfg.ANNOTATION_API_KEY,
            access_token=cfg.ANNOTATION_ACCESS_TOKEN,
            timeout=cfg.ANNOTATION_TIMEOUT_SECONDS,
        )
        return LabelerService(
            broker,
            store,
            annotator,
            image_topic=cfg.IMAGE_TOPIC,
            labeled_topic=cfg.LABELED_TOPIC,
            **worker_opts,
        )

    if role == ServiceRole.ARCHIVER:
        return ArchiverService(
            broker,
            store,
            ArchiveRepository(cfg.ARCHIVE_ROOT),
            labeled_topic=cfg.LABELED_TOPIC,
            target_label=cfg.TARGET_LABEL,
            archive_bucket=cfg.ARCHIVE_BUCKET,
            purge_topic=cfg.PURGE_TOPIC if cfg.PURGE_AFTER_ARCHIVE else None,
            **worker_opts,
        )

    if role == ServiceRole.PURGER:
        return PurgerService(broker, store, topic=cfg.PURGE_TOPIC, **worker_opts)

    raise ValueError(f"unknown service role {role}")
