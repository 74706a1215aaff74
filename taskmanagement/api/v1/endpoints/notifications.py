import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from taskmanagement.api import deps
from taskmanagement.reminders.registry import ConnectionRegistry
from taskmanagement.schemas.notifications import LiveConnections, PipelineStatus
from taskmanagement.websocket import NotificationHub

logger = logging.getLogger(__name__)

router = APIRouter()

# Mounted at the application root, next to the REST API
hub_router = APIRouter()


@router.get("/connections", response_model=LiveConnections)
def get_live_connections(
    current_user_id: int = Depends(deps.get_current_user_id),
    registry: ConnectionRegistry = Depends(deps.get_registry),
):
    """Number of live notification sessions for the calling user"""
    return LiveConnections(user_id=current_user_id, connections=len(registry.lookup(current_user_id)))


@router.get("/status", response_model=PipelineStatus)
def get_pipeline_status(
    registry: ConnectionRegistry = Depends(deps.get_registry),
    pipeline=Depends(deps.get_pipeline),
):
    pipeline_state = pipeline.status() if pipeline is not None else {}
    return PipelineStatus(
        **pipeline_state,
        connected_users=registry.user_count(),
        live_connections=registry.connection_count(),
    )


@hub_router.websocket("/notificationHub")
async def notification_hub(
    websocket: WebSocket,
    hub: NotificationHub = Depends(deps.get_notification_hub),
):
    """Push channel for task notifications (``ReceiveTaskNotification`` events)"""
    user_id = deps.get_websocket_user_id(websocket)
    if user_id is None:
        logger.warning("⚠️ [Hub] Rejected notification connection without a valid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    connection_id = await hub.connect(websocket, user_id)
    try:
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(connection_id, user_id)
