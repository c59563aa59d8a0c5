from fastapi import APIRouter

from chat_relay.api.ws.websocket import RelayWebSocketEndpoint
from chat_relay.settings import app_settings

router = APIRouter()


@router.websocket_route(app_settings.WS_PATH)
class Web(RelayWebSocketEndpoint):
    """
    Chat WebSocket consumer.

    Clients log in with a ``login`` frame and then exchange
    ``private_message`` and ``typing`` frames; the server pushes ``system``,
    ``delivered`` and ``user_list`` frames.
    """
