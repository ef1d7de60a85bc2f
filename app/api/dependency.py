import hmac

from fastapi import Header, Request
from loguru import logger

from app.app_config import get_app_environ_config
from app.domain.streams.stream_domain import StreamService
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def get_stream_service(request: Request) -> StreamService:
    """StreamService built during application startup."""
    return request.app.state.stream_service


async def verify_admin_key(x_api_key: str | None = Header(default=None)) -> None:
    """Require X-Api-Key when ADMIN_API_KEY is configured."""
    expected = get_app_environ_config().ADMIN_API_KEY
    if not expected:
        return

    if not x_api_key or not hmac.compare_digest(x_api_key, expected):
        logger.warning("Invalid admin API key attempt")
        raise AppError(
            errcode=AppErrorCode.E_UNAUTHORIZED,
            errmesg="Invalid API key",
            status_code=HttpStatusCode.UNAUTHORIZED,
        )
