# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI
from config.connections import close_redis, open_redis
from config.settings import settings
from service.factory import build_service
from util.enums import Environment, Color
from util.logger import init_logger
import routes


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    broker_client = store_client = None
    service = None
    try:
        init_logger()
        role = settings.SERVICE_ROLE.value
        print(f"{Color.GREEN}Initializing {role}...{Color.RESET}")
        broker_client = await open_redis(settings.BROKER_URL)
        store_client = (
            broker_client
            if settings.store_url == settings.BROKER_URL
            else await open_redis(settings.store_url)
        )
        service = build_service(settings, broker_client, store_client)
        await service.start()
        fastApi.state.service = service
        print(f"{Color.BLUE}{role} started{Color.RESET}")
    except Exception as e:
        # Fatal: let the orchestrator restart us
        print(f"Startup failed: {type(e).__name__}: {e}")
        if service is not None:
            await service.shutdown()
        await _close_clients(broker_client, store_client)
        raise

    try:
        yield
    finally:
        try:
            await service.shutdown()
        except Exception as e:
            print("Error stopping service:", e)
        await _close_clients(broker_client, store_client)
        print(f"{Color.RED}Server Shutdown{Color.RESET}")


async def _close_clients(broker_client, store_client) -> None:
    try:
        if store_client is not broker_client:
            await close_redis(store_client)
        await close_redis(broker_client)
    except Exception as e:
        print("Error closing Redis:", e)


app: FastAPI = FastAPI(title="fileup", lifespan=lifespan)

routes.register_routes(app, settings.SERVICE_ROLE)

if __name__ == "__main__":
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host=settings.HTTP_HOST, port=settings.HTTP_PORT, reload=reload)
