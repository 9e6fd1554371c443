# silni/application/recipient/resolver.py
# expands announcement targeting rules and streak-risk candidates into recipient ids
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from silni.application.scheduling.recurrence import start_of_day
from silni.domain.user.models import User, Interaction
from silni.infra.clock import to_naive_utc, utcnow
from silni.infra.config import settings

logger = logging.getLogger(__name__)

# 1) targeting rule -> recipient ids
def resolve_recipients(db: Session, target_rule: str, custom_ids: Optional[Iterable[str]] = None, now: datetime = None) -> Set[str]:
    now = to_naive_utc(now) if now else utcnow()

    if target_rule == "all":
        rows = db.query(User.id).all()
    elif target_rule == "active":
        since = now - timedelta(days=settings.ACTIVE_WINDOW_DAYS)
        rows = db.query(User.id).filter(User.last_sign_in_at.isnot(None), User.last_sign_in_at >= since).all()
    elif target_rule == "premium":
        rows = db.query(User.id).filter(User.is_premium.is_(True)).all()
    elif target_rule == "custom":
        # explicit list is taken as is; unknown ids fail quietly at dispatch time
        return {str(user_id) for user_id in (custom_ids or []) if user_id}
    else:
        raise ValueError(f"Unknown target rule: {target_rule}")

    recipients = {row.id for row in rows}
    if not recipients:
        logger.info(f"Target rule '{target_rule}' resolved to no recipients")
    return recipients

# 2) users with a live streak
def find_streak_candidates(db: Session) -> List[User]:
    return db.query(User).filter(User.current_streak > 0).all()

# 3) did the user interact with anyone since the start of the reference day?
def has_activity_today(db: Session, user_id: str, now: datetime = None) -> bool:
    since = start_of_day(now)
    return db.query(Interaction.id).filter(
        Interaction.user_id == user_id,
        Interaction.created_at >= since
    ).first() is not None
