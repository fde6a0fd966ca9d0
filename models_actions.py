from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from extensions import db, utcnow


class ActionLog(db.Model):
    """Append-only history of successful claims. Rows are never updated or deleted."""

    __tablename__ = "action_logs"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False)
    action_key = Column(String(40), nullable=False)
    points = Column(Integer, nullable=False)
    occurred_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_action_logs_user_action_occurred", "user_id", "action_key", "occurred_at"),
    )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "action_key": self.action_key,
            "points": self.points,
            "occurred_at": self.occurred_at.isoformat() if self.occurred_at else None,
        }


class ActionCooldown(db.Model):
    """Per (user, recurring action) reservation row.

    Claims move last_claimed_at forward with a conditional UPDATE, so two
    concurrent claims inside one window cannot both commit. Always written in
    the same transaction as the matching ActionLog row.
    """

    __tablename__ = "action_cooldowns"

    user_id = Column(String(128), primary_key=True)
    action_key = Column(String(40), primary_key=True)
    last_claimed_at = Column(DateTime, nullable=False)


class ActionCompletion(db.Model):
    """Completed one-time actions (the account's completion set)."""

    __tablename__ = "action_completions"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    action_key = Column(String(40), nullable=False)
    completed_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "action_key", name="uq_action_completion_user_action"),
    )
