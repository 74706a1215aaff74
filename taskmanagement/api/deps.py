from typing import Optional

from fastapi import Depends, HTTPException, Request, WebSocket, status
from fastapi.security import OAuth2PasswordBearer

from taskmanagement.core import security
from taskmanagement.core.config import settings
from taskmanagement.reminders.registry import ConnectionRegistry
from taskmanagement.websocket import NotificationHub

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login"
)


def get_current_user_id(token: str = Depends(reusable_oauth2)) -> int:
    user_id = security.decode_access_token(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )
    return user_id


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connection_registry


def get_pipeline(request: Request):
    return getattr(request.app.state, "reminder_pipeline", None)


def get_notification_hub(websocket: WebSocket) -> NotificationHub:
    return websocket.app.state.notification_hub


def get_websocket_user_id(websocket: WebSocket) -> Optional[int]:
    """Browsers cannot set headers on WebSocket upgrades, so the token rides in the query string."""
    token = websocket.query_params.get("access_token")
    if not token:
        auth = websocket.headers.get("authorization")
        if auth and auth.lower().startswith("bearer "):
            token = auth.split(" ", 1)[1]
    return security.decode_access_token(token)
