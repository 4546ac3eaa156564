# controller/probe_controller.py
from fastapi import APIRouter, Depends, Response, status
from service.stage_service import StageService
from util.constants import InternalURIs
from controller.controller_dependencies import get_stage_service

probe_router = APIRouter()


@probe_router.get(InternalURIs.ALIVE)
async def alive() -> Response:
    return Response(status_code=status.HTTP_200_OK)


@probe_router.get(InternalURIs.READY)
async def ready(service: StageService = Depends(get_stage_service)) -> Response:
    if await service.ready():
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_417_EXPECTATION_FAILED)


@probe_router.get(InternalURIs.PRESTOP)
async def prestop(service: StageService = Depends(get_stage_service)) -> Response:
    """Best-effort cleanup before the orchestrator stops this instance."""
    await service.prestop()
    return Response(status_code=status.HTTP_200_OK)
