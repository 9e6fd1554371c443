# silni/application/notification/notification.py
# push fan-out: every active device of a recipient, one audit row per recipient
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from silni.domain.notification.models import NotificationHistory
from silni.domain.user.models import NotificationToken
from silni.infra.clock import utcnow
from silni.infra.config import settings
from silni.infra.firebase.fcm import SendOutcome, build_fcm_message
from silni.infra.monitoring import PUSH_SENDS, PUSH_RECIPIENTS, DEACTIVATED_TOKENS

logger = logging.getLogger(__name__)


@dataclass
class PushPayload:
    notification_type: str
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    channel_id: Optional[str] = None
    badge: Optional[int] = None

    def data_bundle(self) -> Dict[str, str]:
        # FCM only accepts string values in the data map
        bundle = {str(k): "" if v is None else str(v) for k, v in self.data.items()}
        bundle["type"] = self.notification_type
        return bundle


@dataclass
class DispatchResult:
    sent: int = 0
    failed: int = 0

    def add(self, other: "DispatchResult") -> "DispatchResult":
        self.sent += other.sent
        self.failed += other.failed
        return self


def get_active_endpoints(db: Session, user_id: str):
    return db.query(NotificationToken).filter(
        NotificationToken.user_id == user_id,
        NotificationToken.is_active.is_(True)
    ).all()


class PushDispatcher:
    """Sends one payload to every active endpoint of a recipient.

    A dispatcher lives for one batch (one job invocation): it authenticates
    against the provider once and reuses the bearer token for every send.
    A failed endpoint never aborts the batch.
    """

    def __init__(self, db: Session, gateway, send_delay_ms: int = None):
        self.db = db
        self.sender = gateway.sender
        self.token_provider = gateway.token_provider
        self.send_delay = (settings.PUSH_SEND_DELAY_MS if send_delay_ms is None else send_delay_ms) / 1000.0
        self._access_token = None
        self._recipients_seen = 0

    def authenticate(self) -> str:
        if self._access_token is None:
            self._access_token = self.token_provider.get_token()
        return self._access_token

    def dispatch(self, user_id: str, payload: PushPayload) -> DispatchResult:
        # courtesy spacing between recipients, not a correctness requirement
        if self._recipients_seen and self.send_delay > 0:
            time.sleep(self.send_delay)
        self._recipients_seen += 1

        try:
            endpoints = get_active_endpoints(self.db, user_id)
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error fetching tokens for user {user_id}: {e}", exc_info=True)
            return DispatchResult()

        if not endpoints:
            logger.info(f"No active tokens for user {user_id}, skipping")
            return DispatchResult()

        access_token = self.authenticate()
        data = payload.data_bundle()
        result = DispatchResult()
        stale = []

        for endpoint in endpoints:
            message = build_fcm_message(
                token=endpoint.fcm_token,
                platform=endpoint.platform,
                title=payload.title,
                body=payload.body,
                data=data,
                channel_id=payload.channel_id,
                badge=payload.badge,
            )
            try:
                outcome = self.sender.send(message, access_token)
            except Exception as e:
                logger.error(f"Send to {endpoint.platform} token {endpoint.id} of user {user_id} raised: {e}", exc_info=True)
                outcome = SendOutcome(ok=False, error=str(e))

            if outcome.ok:
                result.sent += 1
                PUSH_SENDS.labels(notification_type=payload.notification_type, outcome="sent").inc()
                continue

            result.failed += 1
            PUSH_SENDS.labels(notification_type=payload.notification_type, outcome="failed").inc()
            logger.warning(f"FCM error for user {user_id} ({endpoint.platform}): {outcome.status_code} {outcome.error}")
            if outcome.unregistered:
                stale.append(endpoint)

        if stale:
            self._deactivate(user_id, stale)
        self._record(user_id, payload, data, result)
        logger.info(f"{payload.notification_type} to user {user_id}: {result.sent} sent, {result.failed} failed")
        return result

    def dispatch_many(self, user_ids: Iterable[str], payload: PushPayload) -> DispatchResult:
        total = DispatchResult()
        for user_id in user_ids:
            total.add(self.dispatch(user_id, payload))
        return total

    # committed on its own so a failed history insert cannot undo it
    def _deactivate(self, user_id: str, endpoints):
        try:
            for endpoint in endpoints:
                endpoint.is_active = False
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deactivating tokens of user {user_id}: {e}", exc_info=True)
            return
        DEACTIVATED_TOKENS.inc(len(endpoints))
        for endpoint in endpoints:
            logger.info(f"Deactivated unregistered token {endpoint.id} of user {user_id}")

    def _record(self, user_id: str, payload: PushPayload, data: Dict[str, str], result: DispatchResult):
        status = "sent" if result.sent > 0 else "failed"
        try:
            self.db.add(NotificationHistory(
                user_id=user_id,
                notification_type=payload.notification_type,
                title=payload.title,
                body=payload.body,
                data=data,
                sent_at=utcnow(),
                status=status,
            ))
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error saving notification history for user {user_id}: {e}", exc_info=True)
        PUSH_RECIPIENTS.labels(notification_type=payload.notification_type, status=status).inc()
