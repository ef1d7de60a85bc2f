from fastapi import APIRouter, Request

from .utils import ApiSuccess


router = APIRouter()


@router.get('/health', response_model=ApiSuccess)
async def health(request: Request):
    store = request.app.state.store
    streams = await store.list_streams()
    return ApiSuccess(results={"streams": len(streams)})
