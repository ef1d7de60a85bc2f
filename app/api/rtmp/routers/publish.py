"""nginx-rtmp callback endpoints.

Configure the relay with::

    on_publish http://<host>/publish;
    on_publish_done http://<host>/unpublish;

and pass the key as a query argument of the stream URL (``?auth=<key>``);
nginx-rtmp forwards it as the ``auth`` form field. Any 2xx response lets the
publisher through, everything else rejects it.
"""

from http import HTTPStatus

from fastapi import APIRouter, Depends, Form
from fastapi.responses import PlainTextResponse

from app.api.dependency import get_stream_service
from app.domain.streams.stream_domain import StreamService
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(tags=["RTMP"])


def _status_response(status: HttpStatusCode) -> PlainTextResponse:
    phrase = HTTPStatus(status).phrase
    return PlainTextResponse(f"{int(status)} {phrase}", status_code=int(status))


@router.post("/publish")
async def publish(
    app: str = Form(""),
    name: str = Form(""),
    auth: str = Form(""),
    service: StreamService = Depends(get_stream_service),
) -> PlainTextResponse:
    """Authorize a publisher: 200 granted, 401 unknown key, 403 blocked, 409 busy."""
    result = await service.publish(app, name, auth)
    return _status_response(result.decision.http_status)


@router.post("/unpublish")
async def unpublish(
    app: str = Form(""),
    name: str = Form(""),
    service: StreamService = Depends(get_stream_service),
) -> PlainTextResponse:
    """Release the app/name slot; 401 if nothing was publishing there."""
    try:
        await service.unpublish(app, name)
    except AppError as e:
        if e.errcode != AppErrorCode.E_NO_ACTIVE_STREAM:
            raise
        return _status_response(HttpStatusCode.UNAUTHORIZED)
    return _status_response(HttpStatusCode.OK)
