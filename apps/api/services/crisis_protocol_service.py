"""
Crisis Protocol Service

A crisis protocol is the user's committed response plan: one burden to cut
and one oxygen (support) source. Creating one puts the user into RECOVERY
mode and starts the 14-day lock.

At most one protocol per user is active (completed_at IS NULL). The partial
unique index on crisis_protocol enforces this; the pre-check here only
produces a friendlier error.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.exceptions import BadRequestError, ConflictError, NotFoundError
from models import CrisisProtocol, CrisisType, OperatingMode, RecoveryCheckin, TransactionType, User
from services import token_service
from services.week_calculator import utcnow

logger = logging.getLogger(__name__)


ACTIVE_PROTOCOL_EXISTS = "An active crisis protocol already exists."


@dataclass
class ProtocolCreateResult:
    protocol: CrisisProtocol
    tokens_awarded: int
    new_balance: int


def get_active_protocol(db: Session, user_id: UUID) -> Optional[CrisisProtocol]:
    """The user's active protocol; most recently created wins if more than one exists."""
    return (
        db.query(CrisisProtocol)
        .filter(CrisisProtocol.user_id == user_id, CrisisProtocol.completed_at.is_(None))
        .order_by(CrisisProtocol.created_at.desc())
        .first()
    )


def get_owned_protocol(db: Session, user_id: UUID, protocol_id: UUID) -> Optional[CrisisProtocol]:
    return (
        db.query(CrisisProtocol)
        .filter(CrisisProtocol.id == protocol_id, CrisisProtocol.user_id == user_id)
        .first()
    )


def get_latest_checkin(db: Session, protocol_id: UUID) -> Optional[RecoveryCheckin]:
    return (
        db.query(RecoveryCheckin)
        .filter(RecoveryCheckin.protocol_id == protocol_id)
        .order_by(RecoveryCheckin.week_of.desc())
        .first()
    )


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def create_crisis_protocol(
    db: Session,
    user: User,
    crisis_type: Optional[str],
    burden_to_cut: Optional[str],
    oxygen_source: Optional[str],
    now: Optional[datetime] = None,
) -> ProtocolCreateResult:
    """
    Create the user's crisis protocol, enter RECOVERY mode and credit the
    triage reward. Commits.
    """
    crisis_type = _clean(crisis_type)
    burden_to_cut = _clean(burden_to_cut)
    oxygen_source = _clean(oxygen_source)

    if not crisis_type or not burden_to_cut or not oxygen_source:
        raise BadRequestError("Missing required fields")

    if crisis_type not in {t.value for t in CrisisType}:
        raise BadRequestError("Invalid crisis type")

    if get_active_protocol(db, user.id) is not None:
        raise ConflictError(ACTIVE_PROTOCOL_EXISTS)

    now = now or utcnow()
    protocol = CrisisProtocol(
        user_id=user.id,
        crisis_type=crisis_type,
        burden_to_cut=burden_to_cut,
        oxygen_source=oxygen_source,
        is_burden_cut=False,
        is_oxygen_scheduled=False,
        created_at=now,
    )
    db.add(protocol)
    try:
        db.flush()
    except IntegrityError:
        # Lost a race with a concurrent creation for the same user
        db.rollback()
        raise ConflictError(ACTIVE_PROTOCOL_EXISTS)

    user.operating_mode = OperatingMode.RECOVERY.value
    user.recovery_start_date = now

    amount = token_service.TOKEN_AMOUNTS[TransactionType.CRISIS_COMPLETE]
    entry = token_service.award_tokens(
        db,
        user.id,
        amount,
        TransactionType.CRISIS_COMPLETE,
        description="Completed Crisis Triage",
        related_entity_id=protocol.id,
    )
    db.commit()

    logger.info(f"Crisis protocol {protocol.id} created for user {user.id} ({crisis_type})")
    return ProtocolCreateResult(protocol=protocol, tokens_awarded=amount, new_balance=entry.new_balance)


def update_crisis_protocol(
    db: Session,
    user: User,
    protocol_id: Optional[UUID],
    is_burden_cut: Optional[bool] = None,
    is_oxygen_scheduled: Optional[bool] = None,
    complete: Optional[bool] = None,
) -> CrisisProtocol:
    """
    Toggle the protocol's commitment flags, or mark it complete. Commits.

    `complete` only stamps completed_at. It skips the transition gating and
    leaves the user in RECOVERY with no active protocol, so /api/transition
    then reports no active protocol. Moving to the Vision Track goes through
    transition_service.transition_to_vision_track.
    """
    if protocol_id is None:
        raise BadRequestError("Protocol ID required")

    protocol = get_owned_protocol(db, user.id, protocol_id)
    if not protocol:
        raise NotFoundError("Protocol")

    if is_burden_cut is not None:
        protocol.is_burden_cut = is_burden_cut
    if is_oxygen_scheduled is not None:
        protocol.is_oxygen_scheduled = is_oxygen_scheduled
    if complete and protocol.completed_at is None:
        protocol.completed_at = utcnow()

    db.commit()
    return protocol
