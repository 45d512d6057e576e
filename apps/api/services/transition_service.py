"""
Transition Service

Decides when a user may leave the Recovery Track and performs the move back
to the Vision Track (ASCENT mode).

A user is eligible only when both hold:
1. The 14-day lock has elapsed since recovery_start_date. Accounts with no
   recorded start date (legacy) are treated as past the lock.
2. The active protocol is stable: at least 3 check-ins with oxygen level 6+
   and the protocol's current oxygen level is 6+.

Each unmet condition is reported as its own blocker so the client can show
everything that stands in the way.
"""

from typing import List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from models import CrisisProtocol, OperatingMode, RecoveryCheckin, TransactionType, User
from services import token_service
from services.crisis_protocol_service import get_active_protocol, get_owned_protocol
from services.week_calculator import days_between, utcnow

logger = logging.getLogger(__name__)


RECOVERY_LOCK_DAYS = 14
STABLE_OXYGEN_LEVEL = 6
REQUIRED_STABLE_WEEKS = 3

# Reported for accounts created before the lock existed
LEGACY_DAYS_IN_RECOVERY = 999

NO_ACTIVE_PROTOCOL_MESSAGE = "No active recovery protocol found"
TRANSITION_FAILED_MESSAGE = "Failed to transition. Please try again."


@dataclass
class TransitionEligibility:
    is_eligible: bool
    weeks_stable: int
    current_oxygen_level: Optional[int]
    days_in_recovery: int
    has_14_days_passed: bool
    message: str
    blockers: List[str] = field(default_factory=list)


@dataclass
class TransitionResult:
    success: bool
    message: str
    tokens_awarded: int = 0
    new_balance: int = 0
    error_code: Optional[str] = None  # NOT_FOUND | INELIGIBLE | FAILED


def count_stable_checkins(db: Session, protocol_id: UUID) -> int:
    """Check-ins of this protocol at or above the stable oxygen level."""
    return (
        db.query(RecoveryCheckin)
        .filter(
            RecoveryCheckin.protocol_id == protocol_id,
            RecoveryCheckin.oxygen_level_current >= STABLE_OXYGEN_LEVEL,
        )
        .count()
    )


def get_weeks_stable(db: Session, user_id: UUID) -> int:
    protocol = get_active_protocol(db, user_id)
    if not protocol:
        return 0
    return count_stable_checkins(db, protocol.id)


def check_transition_eligibility(
    db: Session,
    user_id: UUID,
    now: Optional[datetime] = None,
) -> TransitionEligibility:
    """Read-only eligibility report for leaving RECOVERY mode."""
    now = now or utcnow()

    user = db.query(User).filter(User.id == user_id).first()
    protocol = get_active_protocol(db, user_id) if user else None

    if not user or not protocol:
        return TransitionEligibility(
            is_eligible=False,
            weeks_stable=0,
            current_oxygen_level=None,
            days_in_recovery=0,
            has_14_days_passed=False,
            message=NO_ACTIVE_PROTOCOL_MESSAGE,
            blockers=["No active recovery protocol."],
        )

    if user.recovery_start_date is None:
        days_in_recovery = LEGACY_DAYS_IN_RECOVERY
        has_14_days_passed = True
    else:
        days_in_recovery = days_between(user.recovery_start_date, now)
        has_14_days_passed = days_in_recovery >= RECOVERY_LOCK_DAYS

    weeks_stable = count_stable_checkins(db, protocol.id)
    current_oxygen = protocol.oxygen_level_current
    oxygen_ok = current_oxygen is not None and current_oxygen >= STABLE_OXYGEN_LEVEL
    is_stable = weeks_stable >= REQUIRED_STABLE_WEEKS and oxygen_ok

    blockers = []
    if not has_14_days_passed:
        days_left = RECOVERY_LOCK_DAYS - max(days_in_recovery, 0)
        blockers.append(f"{days_left} more day(s) required in recovery mode.")
    if weeks_stable < REQUIRED_STABLE_WEEKS:
        weeks_left = REQUIRED_STABLE_WEEKS - weeks_stable
        blockers.append(f"{weeks_left} more stable week(s) at oxygen level {STABLE_OXYGEN_LEVEL}+ required.")
    if not oxygen_ok:
        blockers.append(f"Current oxygen level must be {STABLE_OXYGEN_LEVEL} or higher.")

    is_eligible = has_14_days_passed and is_stable

    if is_eligible:
        message = (
            f"You've been stable for {weeks_stable} weeks at oxygen level "
            f"{current_oxygen}/10. You're ready!"
        )
    else:
        message = "Keep recovering. " + " ".join(blockers)

    return TransitionEligibility(
        is_eligible=is_eligible,
        weeks_stable=weeks_stable,
        current_oxygen_level=current_oxygen,
        days_in_recovery=days_in_recovery,
        has_14_days_passed=has_14_days_passed,
        message=message,
        blockers=blockers,
    )


def transition_to_vision_track(
    db: Session,
    user_id: UUID,
    protocol_id: UUID,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Complete the protocol, return the user to ASCENT mode and credit the
    recovery reward, all in one transaction.

    Never raises: failures come back as TransitionResult with an error_code.
    """
    now = now or utcnow()

    protocol: Optional[CrisisProtocol] = get_owned_protocol(db, user_id, protocol_id)
    if not protocol:
        return TransitionResult(success=False, message="Crisis protocol not found", error_code="NOT_FOUND")

    if protocol.completed_at is not None:
        return TransitionResult(
            success=False,
            message="This protocol is already completed.",
            error_code="INELIGIBLE",
        )

    eligibility = check_transition_eligibility(db, user_id, now=now)
    if not eligibility.is_eligible:
        return TransitionResult(success=False, message=eligibility.message, error_code="INELIGIBLE")

    # The eligibility check reads the active protocol; it must be this one
    active = get_active_protocol(db, user_id)
    if active is None or active.id != protocol.id:
        return TransitionResult(
            success=False,
            message="Only the active protocol can be completed.",
            error_code="INELIGIBLE",
        )

    amount = token_service.TOKEN_AMOUNTS[TransactionType.RECOVERY_COMPLETE]
    try:
        protocol.completed_at = now

        user = db.query(User).filter(User.id == user_id).first()
        user.operating_mode = OperatingMode.ASCENT.value
        user.recovery_start_date = None

        entry = token_service.award_tokens(
            db,
            user_id,
            amount,
            TransactionType.RECOVERY_COMPLETE,
            description="Transitioned from Recovery to Vision Track",
            related_entity_id=protocol.id,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"[TRANSITION_ERROR] user={user_id} protocol={protocol_id}: {e}", exc_info=True)
        return TransitionResult(success=False, message=TRANSITION_FAILED_MESSAGE, error_code="FAILED")

    logger.info(f"User {user_id} transitioned to Vision Track (protocol {protocol_id})")
    return TransitionResult(
        success=True,
        message="Successfully transitioned to Vision Track!",
        tokens_awarded=amount,
        new_balance=entry.new_balance,
    )
