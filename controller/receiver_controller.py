# controller/receiver_controller.py
from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile
from fastapi.responses import PlainTextResponse
from service.receiver_service import ReceiverService
from util.constants import InternalURIs
from util.enums import ErrorMessage
from util.errors import UploadError
from controller.controller_dependencies import get_receiver_service
import logging

logger = logging.getLogger(__name__)

receiver_router = APIRouter()


@receiver_router.post(InternalURIs.RECEIVE, response_class=PlainTextResponse)
async def receive(
    request: Request,
    service: ReceiverService = Depends(get_receiver_service),
) -> PlainTextResponse:
    # Parse the form by hand: a missing or broken "file" field is a 500, not a 422.
    try:
        form = await request.form()
    except Exception as e:
        logger.error("upload.form.error err=%s", e)
        raise UploadError.of(ErrorMessage.FORM_PARSE_FAILED, e)

    file = form.get("file")
    if not isinstance(file, UploadFile):
        raise UploadError.of(ErrorMessage.FORM_PARSE_FAILED, "missing multipart field 'file'")

    try:
        name = await service.receive_upload(file)
    finally:
        await file.close()
    return PlainTextResponse(f"File {name} uploaded successfully.\n")


async def upload_error_handler(request: Request, exc: UploadError) -> PlainTextResponse:
    return PlainTextResponse(str(exc), status_code=exc.status_code)
