"""
HTTP surface: upload endpoint and probes, driven through ASGITransport
against an app wired with an already started service (no lifespan).
"""
from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport

import routes
from service.purger_service import PurgerService
from service.receiver_service import ReceiverService
from util.enums import ServiceRole

pytestmark = pytest.mark.anyio("asyncio")


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
async def receiver_app(store, broker, clock):
    svc = ReceiverService(store, broker, bucket="bucket", topic="images", clock=clock)
    await svc.start()
    app = FastAPI()
    routes.register_routes(app, ServiceRole.RECEIVER)
    app.state.service = svc
    yield app
    await svc.shutdown()


async def test_upload_ok(receiver_app, store, broker):
    await broker.ensure_subscription("observer", "images")
    async with _client(receiver_app) as c:
        r = await c.post("/receive", files={"file": ("cat1.jpg", b"\x00" * 200, "image/jpeg")})

    assert r.status_code == 200
    assert r.text.strip() == "File cat1.jpg uploaded successfully."
    assert len(await store.get_object("bucket", "cat1.jpg")) == 200
    [msg] = await broker.pull("observer", "test")
    assert msg.text() == "bucket/cat1.jpg"


async def test_upload_without_file_field_is_a_server_error(receiver_app, broker):
    async with _client(receiver_app) as c:
        r = await c.post("/receive", data={"note": "no file here"})

    assert r.status_code == 500
    assert r.text.startswith("Unable to extract file contents from request")
    assert broker.published == []


async def test_liveness_and_readiness(receiver_app):
    async with _client(receiver_app) as c:
        assert (await c.get("/_alive")).status_code == 200
        assert (await c.get("/_ready")).status_code == 200

        assert (await c.get("/_prestop")).status_code == 200
        assert (await c.get("/_ready")).status_code == 417
        # Best effort: cleanup failures do not change the status
        assert (await c.get("/_prestop")).status_code == 200


async def test_worker_app_exposes_probes_only(store, broker):
    svc = PurgerService(
        broker, store, topic="purge", subscription="p%purge", consumer_name="t", block_ms=None
    )
    await svc.setup()
    app = FastAPI()
    routes.register_routes(app, ServiceRole.PURGER)
    app.state.service = svc

    async with _client(app) as c:
        assert (await c.get("/_ready")).status_code == 200
        r = await c.post("/receive", files={"file": ("a.jpg", b"x", "image/jpeg")})
    assert r.status_code == 404
