# service/purger_service.py
import logging
from core.entities import BrokerMessage, ObjectLocation
from service.stage_service import WorkerService
from util.enums import ServiceRole
from util.errors import MalformedMessageError

logger = logging.getLogger(__name__)


class PurgerService(WorkerService):
    """
    Deletes local objects named by purge-notifications. A purge for an object
    that is already gone is a no-op, so every message is acknowledged.
    """

    role = ServiceRole.PURGER

    async def handle(self, message: BrokerMessage) -> None:
        try:
            location = ObjectLocation.parse(message.text())
        except MalformedMessageError as e:
            logger.error("purge.bad_message id=%s err=%s", message.id, e)
            return

        try:
            removed = await self._store.remove_object(location.bucket, location.key)
        except Exception as e:
            logger.error("purge.remove.error location=%s err=%s", location, e)
            return

        if removed:
            logger.info("purge.removed location=%s", location)
        else:
            logger.info("purge.absent location=%s", location)
