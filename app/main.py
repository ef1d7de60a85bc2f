import time
import traceback
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import ORJSONResponse
from granian import Granian
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.admin.routers.streams import router as admin_router
from app.api.rtmp.routers.publish import router as rtmp_router
from app.app_config import get_app_environ_config
from app.domain.streams.expiry import ExpirySweeper
from app.domain.streams.persistence import StatePersistence
from app.domain.streams.store import StreamStore
from app.domain.streams.stream_domain import StreamService
from app.services.nginx_control.control_client import NginxControlClient
from app.shared.api.health import router as health_router
from app.shared.api.utils import (
    api_failure,
    app_error_handler,
    init_logger,
    log_routes,
    validation_exception_handler,
)
from app.utils.app_errors import AppError, AppErrorCode


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(
                status_code=500,
                content=failure.model_dump(),
            )


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")
    app_config = get_app_environ_config()

    # a corrupt state file aborts startup here
    store = await StreamStore.open(StatePersistence(app_config.STORE_PATH))

    try:
        await store.set_ctrl_url(app_config.CTRL_URL)
    except AppError as e:
        logger.error(f"Couldn't persist control url: {e.errmesg}")

    control = NginxControlClient(store, timeout=app_config.CTRL_TIMEOUT_SECONDS)
    sweeper = ExpirySweeper(store, control, interval=app_config.EXPIRE_INTERVAL_SECONDS)

    server.state.store = store
    server.state.stream_service = StreamService(store, control, app_config.APPLICATIONS)
    server.state.sweeper = sweeper

    sweeper.start()
    log_routes(server)

    yield

    logger.info("Application shutdown...")

    await sweeper.stop()


app = FastAPI(
    version="1.0",
    title="RTMP Auth",
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    default_response_class=ORJSONResponse,
    lifespan=lifespan,
)

app.add_middleware(HTTPLoggingMiddleware)

app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
app.add_exception_handler(AppError, app_error_handler)  # type: ignore

app.include_router(health_router)
app.include_router(rtmp_router)
app.include_router(admin_router)


def build_granian_kwargs():
    app_config = get_app_environ_config()
    if app_config.API_WORKERS != 1:
        logger.warning(
            f"API_WORKERS={app_config.API_WORKERS} ignored, the stream registry is process local"
        )

    kwargs = {
        "interface": "asgi",
        "address": app_config.API_HOST,
        "port": app_config.API_PORT,
        "workers": 1,
        "reload": app_config.DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("app.main:app", **granian_kwargs).serve()
