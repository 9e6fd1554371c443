# silni/infra/redis/redis_subscriber.py
# ad-hoc push requests published by other services on a redis channel
import redis
import json
import logging
from typing import Dict

from silni.application.notification.notification import PushDispatcher, PushPayload
from silni.infra.db.database import SessionLocal

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("userId", "notificationType", "title", "body")

class RedisSubscriber:
    def __init__(self, redis_host: str, redis_port: int, channel: str, gateway_factory):
        self.redis_client = redis.StrictRedis(host=redis_host, port=redis_port, db=0)
        self.redis_channel = channel
        self.gateway_factory = gateway_factory
        logger.info(f"RedisSubscriber initialized with host={redis_host}, port={redis_port}, channel={channel}")

    # 1) listen for push requests
    def listen_notifications(self):
        pubsub = self.redis_client.pubsub()
        pubsub.subscribe(self.redis_channel)

        logger.info("Listening for push requests...")
        for message in pubsub.listen():
            if message["type"] == "message":
                self.handle_message(message["data"])

    # 2) decode and validate one message
    def handle_message(self, raw) -> bool:
        try:
            request = json.loads(raw)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            logger.error(f"JSON decode error: {e} - raw message: {raw!r}")
            return False

        if not isinstance(request, dict) or not all(request.get(key) for key in REQUIRED_FIELDS):
            logger.warning(f"Dropping push request with missing fields: {request}")
            return False

        logger.info(f"Received push request for user {request['userId']} ({request['notificationType']})")
        return self.send_push(request)

    # 3) fan out to the user's devices
    def send_push(self, request: Dict) -> bool:
        db = SessionLocal()
        try:
            dispatcher = PushDispatcher(db, self.gateway_factory(), send_delay_ms=0)
            payload = PushPayload(
                notification_type=request["notificationType"],
                title=request["title"],
                body=request["body"],
                data=request.get("data") or {},
            )
            result = dispatcher.dispatch(request["userId"], payload)
            logger.info(f"Push request for user {request['userId']}: {result.sent} sent, {result.failed} failed")
            return True
        except Exception as e:
            db.rollback()
            logger.error(f"Error sending push request: {e}", exc_info=True)
            return False
        finally:
            db.close()
