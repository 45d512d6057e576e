"""
Recovery Check-in Service

One check-in per user, protocol and ISO week. The unique constraint on
recovery_checkin rejects duplicates at insert time; there is no separate
existence check to race against.

A successful check-in, in one transaction:
- stores the check-in
- updates the protocol's oxygen levels
- advances the weekly streak
- credits the check-in reward

A crisis Fog Check is then generated best-effort. If the model fails the
check-in still succeeds with fog_check=None.
"""

from typing import List, Optional
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import logging

from openai import OpenAI
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import BadRequestError, NotFoundError
from models import FogCheck, RecoveryCheckin, TransactionType, User
from services import token_service
from services.crisis_protocol_service import get_owned_protocol
from services.fog_check_service import generate_crisis_fog_check
from services.streak_service import StreakUpdate, update_streak_on_log
from services.transition_service import REQUIRED_STABLE_WEEKS, count_stable_checkins
from services.week_calculator import get_week_of

logger = logging.getLogger(__name__)


MIN_OXYGEN_LEVEL = 1
MAX_OXYGEN_LEVEL = 10


@dataclass
class CheckinResult:
    checkin: RecoveryCheckin
    streak: StreakUpdate
    fog_check: Optional[FogCheck]
    is_stable: bool
    tokens_awarded: int
    new_balance: int


def validate_oxygen_level(level: Optional[int]) -> None:
    if level is not None and not (MIN_OXYGEN_LEVEL <= level <= MAX_OXYGEN_LEVEL):
        raise BadRequestError("Oxygen level must be between 1 and 10.")


def submit_recovery_checkin(
    db: Session,
    user: User,
    protocol_id: Optional[UUID],
    protocol_completed: Optional[bool] = None,
    oxygen_connected: Optional[bool] = None,
    oxygen_level_current: Optional[int] = None,
    notes: Optional[str] = None,
    llm_client: Optional[OpenAI] = None,
    now: Optional[datetime] = None,
) -> CheckinResult:
    if protocol_id is None:
        raise BadRequestError("Protocol ID required")
    validate_oxygen_level(oxygen_level_current)

    protocol = get_owned_protocol(db, user.id, protocol_id)
    if not protocol:
        raise NotFoundError("Protocol")

    week_of = get_week_of(now)
    checkin = RecoveryCheckin(
        user_id=user.id,
        protocol_id=protocol.id,
        week_of=week_of,
        protocol_completed=protocol_completed,
        oxygen_connected=oxygen_connected,
        oxygen_level_current=oxygen_level_current,
        notes=(notes or "").strip() or None,
    )
    db.add(checkin)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        logger.info(f"Duplicate recovery check-in rejected: user={user.id} protocol={protocol_id} week_of={week_of}")
        raise BadRequestError("Already checked in this week.")

    if oxygen_level_current is not None:
        protocol.oxygen_level_current = oxygen_level_current
        if protocol.oxygen_level_start is None:
            protocol.oxygen_level_start = oxygen_level_current

    streak = update_streak_on_log(db, user, week_of)

    amount = token_service.TOKEN_AMOUNTS[TransactionType.RECOVERY_CHECKIN]
    entry = token_service.award_tokens(
        db,
        user.id,
        amount,
        TransactionType.RECOVERY_CHECKIN,
        description="Recovery Check-in",
        related_entity_id=checkin.id,
    )
    db.commit()

    fog_check = None
    try:
        fog_check = generate_crisis_fog_check(db, llm_client, user.id, protocol, checkin)
    except Exception as e:
        db.rollback()
        logger.error(f"[CRISIS_FOG_CHECK_ERROR] user={user.id} protocol={protocol.id}: {e}")

    is_stable = count_stable_checkins(db, protocol.id) >= REQUIRED_STABLE_WEEKS

    return CheckinResult(
        checkin=checkin,
        streak=streak,
        fog_check=fog_check,
        is_stable=is_stable,
        tokens_awarded=amount,
        new_balance=entry.new_balance,
    )


def list_recovery_checkins(db: Session, user: User, protocol_id: Optional[UUID]) -> List[RecoveryCheckin]:
    """The user's check-ins for one protocol, newest week first."""
    if protocol_id is None:
        raise BadRequestError("Protocol ID required")
    return (
        db.query(RecoveryCheckin)
        .filter(RecoveryCheckin.user_id == user.id, RecoveryCheckin.protocol_id == protocol_id)
        .order_by(RecoveryCheckin.week_of.desc())
        .all()
    )
