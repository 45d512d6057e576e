from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
from datetime import datetime, timezone
import enum
import uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OperatingMode(str, enum.Enum):
    ASCENT = "ASCENT"      # forward / vision track
    RECOVERY = "RECOVERY"  # crisis recovery track, time-locked


class CrisisType(str, enum.Enum):
    TOXIC_ENV = "TOXIC_ENV"
    BURNOUT = "BURNOUT"
    FINANCIAL = "FINANCIAL"
    IMPOSTER = "IMPOSTER"


class FogCheckType(str, enum.Enum):
    CRISIS = "CRISIS"
    WEEK_1 = "WEEK_1"
    WEEK_2_3 = "WEEK_2_3"
    WEEK_4_PLUS = "WEEK_4_PLUS"


class TransactionType(str, enum.Enum):
    CRISIS_COMPLETE = "CRISIS_COMPLETE"
    RECOVERY_CHECKIN = "RECOVERY_CHECKIN"
    RECOVERY_COMPLETE = "RECOVERY_COMPLETE"
    STREAK_BONUS = "STREAK_BONUS"
    PURCHASE = "PURCHASE"


class User(Base):
    __tablename__ = "app_user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    email = Column(Text, unique=True, nullable=False)
    password_hash = Column(Text, nullable=True)
    display_name = Column(Text, nullable=True)

    # --- RECOVERY TRACK ---
    operating_mode = Column(Text, default=OperatingMode.ASCENT.value, nullable=False)
    # Start of the 14-day lock. NULL means no active lock (legacy accounts included).
    recovery_start_date = Column(DateTime(timezone=True), nullable=True)

    # --- REWARD LEDGER (denormalized running balance; TokenTransaction is the source of truth) ---
    token_balance = Column(Integer, default=0, nullable=False)
    total_tokens_earned = Column(Integer, default=0, nullable=False)

    # --- WEEKLY STREAK ---
    current_streak = Column(Integer, default=0, nullable=False)
    longest_streak = Column(Integer, default=0, nullable=False)
    life_lines = Column(Integer, default=0, nullable=False)
    last_log_date = Column(Date, nullable=True)  # week_of of the most recent weekly entry

    crisis_protocols = relationship("CrisisProtocol", back_populates="user")

    __table_args__ = (
        CheckConstraint("operating_mode IN ('ASCENT', 'RECOVERY')", name="ck_app_user_operating_mode"),
    )


class CrisisProtocol(Base):
    __tablename__ = "crisis_protocol"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    crisis_type = Column(Text, nullable=False)
    burden_to_cut = Column(Text, nullable=False)
    oxygen_source = Column(Text, nullable=False)
    is_burden_cut = Column(Boolean, default=False, nullable=False)
    is_oxygen_scheduled = Column(Boolean, default=False, nullable=False)
    oxygen_level_start = Column(Integer, nullable=True)  # set by the first check-in that reports a level
    oxygen_level_current = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)  # NULL = active

    user = relationship("User", back_populates="crisis_protocols")
    recovery_checkins = relationship("RecoveryCheckin", back_populates="protocol")

    __table_args__ = (
        CheckConstraint(
            "crisis_type IN ('TOXIC_ENV', 'BURNOUT', 'FINANCIAL', 'IMPOSTER')",
            name="ck_crisis_protocol_crisis_type",
        ),
        CheckConstraint(
            "oxygen_level_current IS NULL OR (oxygen_level_current BETWEEN 1 AND 10)",
            name="ck_crisis_protocol_oxygen_current_range",
        ),
        CheckConstraint(
            "oxygen_level_start IS NULL OR (oxygen_level_start BETWEEN 1 AND 10)",
            name="ck_crisis_protocol_oxygen_start_range",
        ),
        # At most one active protocol per user
        Index(
            "uq_crisis_protocol_one_active_per_user",
            "user_id",
            unique=True,
            postgresql_where=completed_at.is_(None),
            sqlite_where=completed_at.is_(None),
        ),
    )


class RecoveryCheckin(Base):
    __tablename__ = "recovery_checkin"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    protocol_id = Column(Uuid(as_uuid=True), ForeignKey("crisis_protocol.id"), nullable=False, index=True)
    week_of = Column(Date, nullable=False)  # Monday of the ISO week
    protocol_completed = Column(Boolean, nullable=True)
    oxygen_connected = Column(Boolean, nullable=True)
    oxygen_level_current = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    protocol = relationship("CrisisProtocol", back_populates="recovery_checkins")

    __table_args__ = (
        UniqueConstraint("user_id", "protocol_id", "week_of", name="uq_recovery_checkin_user_protocol_week"),
        CheckConstraint(
            "oxygen_level_current IS NULL OR (oxygen_level_current BETWEEN 1 AND 10)",
            name="ck_recovery_checkin_oxygen_range",
        ),
    )


class FogCheck(Base):
    """AI-generated feedback (observation + strategic question). Immutable once written."""
    __tablename__ = "fog_check"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    protocol_id = Column(Uuid(as_uuid=True), ForeignKey("crisis_protocol.id"), nullable=True)
    observation = Column(Text, nullable=False)
    strategic_question = Column(Text, nullable=False)
    fog_check_type = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_fog_check_user_type_created", "user_id", "fog_check_type", "created_at"),
    )


class TokenTransaction(Base):
    """Append-only reward ledger row."""
    __tablename__ = "token_transaction"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("app_user.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed: negative for spends
    transaction_type = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    related_entity_id = Column(Uuid(as_uuid=True), nullable=True)
    balance_after = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_token_transaction_user_created", "user_id", "created_at"),
        Index("ix_token_transaction_user_entity", "user_id", "related_entity_id"),
    )
