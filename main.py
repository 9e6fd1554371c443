# main.py
# entry point of the notification dispatch service
import logging
from threading import Thread

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from silni.infra.config import settings
from silni.infra.redis.redis_subscriber import RedisSubscriber
from silni.infra.scheduler import start_scheduler, shutdown_scheduler
from silni.interface.api.notification import router as notification_router, get_push_gateway

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)

app = FastAPI(title="Silni notification dispatch")

app.mount("/metrics", make_asgi_app())

# redis subscribe runs in the background
@app.on_event("startup")
def startup_event():
    if settings.REDIS_SUBSCRIBER_ENABLED:
        redis_subscriber = RedisSubscriber(
            redis_host=settings.REDIS_HOST,
            redis_port=settings.REDIS_PORT,
            channel=settings.REDIS_CHANNEL,
            gateway_factory=get_push_gateway,
        )
        thread = Thread(target=redis_subscriber.listen_notifications)
        thread.daemon = True
        thread.start()

    if settings.SCHEDULER_ENABLED:
        start_scheduler(get_push_gateway)

@app.on_event("shutdown")
def shutdown_event():
    shutdown_scheduler()

@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}

app.include_router(notification_router, tags=["notifications"])
