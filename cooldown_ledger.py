"""Claim log + cooldown reservations.

Rule (recurring actions): a claim is allowed when there is no previous claim or
when now - last_claim >= 24h. Exactly 24h counts as elapsed.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update

from action_catalog import RECURRING_COOLDOWN
from extensions import db
from models_actions import ActionCooldown, ActionLog


def cooldown_ends_at(last_claim: datetime, cooldown: timedelta = RECURRING_COOLDOWN) -> datetime:
    return last_claim + cooldown


def is_on_cooldown(last_claim: Optional[datetime], now: datetime, cooldown: timedelta = RECURRING_COOLDOWN) -> bool:
    if last_claim is None:
        return False
    return now - last_claim < cooldown


class CooldownLedger:
    def last_claim_time(self, user_id: str, action_key: str) -> Optional[datetime]:
        return db.session.execute(
            select(func.max(ActionLog.occurred_at)).where(
                ActionLog.user_id == user_id,
                ActionLog.action_key == action_key,
            )
        ).scalar()

    def last_claim_times(self, user_id: str) -> dict[str, datetime]:
        rows = db.session.execute(
            select(ActionLog.action_key, func.max(ActionLog.occurred_at))
            .where(ActionLog.user_id == user_id)
            .group_by(ActionLog.action_key)
        ).all()
        return {key: last for key, last in rows}

    def record(self, user_id: str, action_key: str, points: int, now: datetime) -> ActionLog:
        entry = ActionLog(user_id=user_id, action_key=action_key, points=int(points), occurred_at=now)
        db.session.add(entry)
        return entry

    def reserve(self, user_id: str, action_key: str, now: datetime, cooldown: timedelta = RECURRING_COOLDOWN) -> bool:
        """Take the next claim slot for (user, action) if the cooldown has elapsed.

        Returns False when another claim already holds the current window. The
        very first claim inserts the reservation row; if a concurrent request
        inserts it first, the flush raises IntegrityError and the caller must
        roll back.
        """
        threshold = now - cooldown
        result = db.session.execute(
            update(ActionCooldown)
            .where(
                ActionCooldown.user_id == user_id,
                ActionCooldown.action_key == action_key,
                ActionCooldown.last_claimed_at <= threshold,
            )
            .values(last_claimed_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return True

        held = db.session.execute(
            select(ActionCooldown.last_claimed_at).where(
                ActionCooldown.user_id == user_id,
                ActionCooldown.action_key == action_key,
            )
        ).first()
        if held is not None:
            return False

        db.session.add(ActionCooldown(user_id=user_id, action_key=action_key, last_claimed_at=now))
        db.session.flush()
        return True
