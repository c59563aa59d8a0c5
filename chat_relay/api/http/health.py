"""Health check endpoint for monitoring service status."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from chat_relay.routing import MessageRouter

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    active_connections: int
    online_users: int


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check endpoint",
    tags=["health"],
)
async def health_check(request: Request) -> HealthResponse:
    """
    Report service status and current load.

    Returns:
        HealthResponse: Number of open WebSocket connections and of users
            logged in.
    """
    message_router: MessageRouter = request.app.state.message_router

    return HealthResponse(
        status="healthy",
        active_connections=len(message_router.connections),
        online_users=len(await message_router.registry.snapshot()),
    )
