import logging
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from classpoints.api.deps import Principal, get_optional_user, get_services, require_teacher
from classpoints.core.middleware import client_address
from classpoints.schemas.common import ok
from classpoints.schemas.sse import SseTestRequest
from classpoints.services.container import ServiceContainer
from classpoints.services.events import EventBus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sse", tags=["sse"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def event_stream(
    bus: EventBus,
    is_disconnected: Callable[[], Awaitable[bool]],
    poll_seconds: float,
    client: str | None = None,
    user_id: str | None = None,
) -> AsyncIterator[str]:
    with bus.subscribe(client=client, user_id=user_id) as subscriber:
        while subscriber.alive:
            if await is_disconnected():
                break
            frame = await subscriber.next_frame(timeout=poll_seconds)
            if frame is None:
                continue
            yield frame


@router.get("/events")
def events(
    request: Request,
    services: ServiceContainer = Depends(get_services),
    user: Principal | None = Depends(get_optional_user),
):
    stream = event_stream(
        services.bus,
        request.is_disconnected,
        services.settings.sse_poll_seconds,
        client=client_address(request),
        user_id=user.user_id if user else None,
    )
    return StreamingResponse(stream, media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/status")
def sse_status(services: ServiceContainer = Depends(get_services)):
    bus = services.bus
    return ok(
        {
            "activeConnections": bus.count,
            "publishedEvents": bus.published,
            "clients": [subscriber.info() for subscriber in bus.subscribers()],
        }
    )


@router.post("/test", dependencies=[Depends(require_teacher)])
def sse_test(payload: SseTestRequest, services: ServiceContainer = Depends(get_services)):
    delivered = services.bus.notification(payload.message, payload.level)
    return ok({"delivered": delivered}, message="Test event published")
