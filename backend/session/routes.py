from functools import lru_cache

from fastapi import APIRouter, Depends, WebSocket

from .controller import MediaStreamController

router = APIRouter()


@lru_cache
def get_media_stream_controller() -> MediaStreamController:
    return MediaStreamController()


async def close_media_stream_controller() -> None:
    """Release the shared controller's HTTP client, if one was ever created."""
    if get_media_stream_controller.cache_info().currsize:
        await get_media_stream_controller().aclose()
        get_media_stream_controller.cache_clear()


@router.websocket("/media-stream")
async def media_stream(
    websocket: WebSocket,
    controller: MediaStreamController = Depends(get_media_stream_controller),
):
    await controller.serve(websocket)
