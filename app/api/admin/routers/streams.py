from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from app.api.admin.schemas.base import ApiOut
from app.api.admin.schemas.streams import CreateStreamIn, ListStreamsOut, SetBlockedIn, StreamOut
from app.api.dependency import get_stream_service, verify_admin_key
from app.domain.streams.stream_domain import StreamService
from app.domain.streams.stream_models import StreamCreateParams

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(verify_admin_key)])


@router.get("/streams")
async def list_streams(
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[ListStreamsOut]:
    """List all credential records in insertion order."""
    streams = await service.list_streams()
    return ApiOut[ListStreamsOut](
        results=ListStreamsOut(
            applications=service.applications,
            streams=[StreamOut.from_record(s) for s in streams],
        )
    )


@router.post("/streams")
async def add_stream(
    body: CreateStreamIn,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    """Add a credential record."""
    params = StreamCreateParams(
        application=body.application,
        name=body.name,
        auth_key=body.auth_key,
        auth_expire=body.auth_expire,
        notes=body.notes,
        blocked=body.blocked,
    )
    stream = await service.add_stream(params)
    return ApiOut[StreamOut](results=StreamOut.from_record(stream))


@router.delete("/streams/{stream_id}")
async def remove_stream(
    stream_id: str,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    """Remove a record, dropping its publisher first if it is live."""
    stream = await service.remove_stream(stream_id)
    return ApiOut[StreamOut](results=StreamOut.from_record(stream))


@router.post("/streams/{stream_id}/block")
async def set_blocked(
    stream_id: str,
    body: SetBlockedIn,
    service: StreamService = Depends(get_stream_service),
) -> ApiOut[StreamOut]:
    """Block or unblock a record. Blocking drops a live publisher."""
    stream = await service.set_blocked(stream_id, body.blocked)
    return ApiOut[StreamOut](results=StreamOut.from_record(stream))


@router.get("/dumpscript", response_class=PlainTextResponse)
async def dumpscript(service: StreamService = Depends(get_stream_service)) -> PlainTextResponse:
    """Shell script re-creating every record through this API."""
    return PlainTextResponse(await service.dump_script())
