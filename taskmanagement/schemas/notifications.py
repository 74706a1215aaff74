from typing import Optional

from pydantic import BaseModel


class LiveConnections(BaseModel):
    user_id: int
    connections: int


class PipelineStatus(BaseModel):
    scanner_running: bool = False
    dispatcher_running: bool = False
    publisher_connected: bool = False
    consumer_connected: bool = False
    queue_name: Optional[str] = None
    eligibility_policy: Optional[str] = None
    connected_users: int
    live_connections: int
