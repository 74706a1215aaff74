from enum import Enum
from typing import Optional
from urllib.parse import quote

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EligibilityPolicy(str, Enum):
    # Notify once per overdue episode: eligible while updated_at < due_date
    DUE_DATE = "due_date"
    # Re-notify every cycle: eligible while updated_at < now - scan interval
    INTERVAL = "interval"


class ReminderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REMINDER_", env_file=".env", extra="ignore")

    # RabbitMQ configuration
    RABBITMQ_HOST: str = "localhost"
    RABBITMQ_PORT: int = 5672
    RABBITMQ_USER: str = "guest"
    RABBITMQ_PASSWORD: str = "guest"
    RABBITMQ_VHOST: str = "/"
    RABBITMQ_URL: Optional[str] = None
    QUEUE_NAME: str = "TaskReminders"
    PREFETCH_COUNT: int = 1
    CONNECT_TIMEOUT_SECONDS: float = 5.0
    RECONNECT_INITIAL_DELAY_SECONDS: float = 1.0
    RECONNECT_MAX_DELAY_SECONDS: float = 60.0

    # Scheduling
    SCAN_INTERVAL_SECONDS: int = 300
    SCAN_BATCH_SIZE: int = 500
    ELIGIBILITY_POLICY: EligibilityPolicy = EligibilityPolicy.DUE_DATE

    # Consumer
    CONSUMER_POLL_SECONDS: float = 1.0

    # Which loops this process runs
    RUN_SCANNER: bool = True
    RUN_DISPATCHER: bool = True

    # Metrics
    METRICS_ENABLED: bool = True

    @model_validator(mode="after")
    def _derive_broker_url(self) -> "ReminderSettings":
        if not self.RABBITMQ_URL:
            vhost = quote(self.RABBITMQ_VHOST, safe="")
            self.RABBITMQ_URL = (
                f"amqp://{quote(self.RABBITMQ_USER, safe='')}:{quote(self.RABBITMQ_PASSWORD, safe='')}"
                f"@{self.RABBITMQ_HOST}:{self.RABBITMQ_PORT}/{vhost}"
            )
        return self


settings = ReminderSettings()
