# controller/controller_dependencies.py
from fastapi import Request, status
from service.receiver_service import ReceiverService
from service.stage_service import StageService
from util.errors import AppError


def get_stage_service(request: Request) -> StageService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise AppError("Service not started", status.HTTP_503_SERVICE_UNAVAILABLE)
    return service


def get_receiver_service(request: Request) -> ReceiverService:
    service = get_stage_service(request)
    if not isinstance(service, ReceiverService):
        raise AppError("Not a receiver", status.HTTP_404_NOT_FOUND)
    return service
