# silni/infra/config.py
# environment driven settings for the dispatch service
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import pytz

load_dotenv()

class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./silni.db"

    # all "today" / "this hour" arithmetic happens in this zone (UTC+3)
    REFERENCE_TIMEZONE: str = "Asia/Riyadh"

    FIREBASE_CREDENTIAL_PATH: Optional[str] = None
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = None
    FCM_SEND_URL: str = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

    PUSH_SEND_TIMEOUT: float = 5.0
    PUSH_SEND_DELAY_MS: int = 50
    STREAK_SEND_DELAY_MS: int = 100
    ACTIVE_WINDOW_DAYS: int = 7

    ANDROID_CHANNEL_ID: str = "silni_channel"
    ANNOUNCEMENT_CHANNEL_ID: str = "silni_announcements"

    SERVICE_ROLE_SECRET: Optional[str] = None

    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_CHANNEL: str = "push_notification_channel"
    REDIS_SUBSCRIBER_ENABLED: bool = False

    SCHEDULER_ENABLED: bool = False
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def reference_tz(self):
        return pytz.timezone(self.REFERENCE_TIMEZONE)


settings = Settings()
