# routes.py
from fastapi import FastAPI
from controller.probe_controller import probe_router
from controller.receiver_controller import receiver_router, upload_error_handler
from util.enums import ServiceRole
from util.errors import UploadError


def register_routes(app: FastAPI, role: ServiceRole) -> None:
    """Probes on every stage; the upload endpoint only on the receiver."""
    app.include_router(probe_router)
    if role == ServiceRole.RECEIVER:
        app.include_router(receiver_router)
        app.add_exception_handler(UploadError, upload_error_handler)
