from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from app.services.sse import SSEHub, get_sse_hub

router = APIRouter(prefix="/events", tags=["events"])


@router.get("")
async def stream_events(hub: SSEHub = Depends(get_sse_hub)):
    return StreamingResponse(
        hub.subscribe(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
