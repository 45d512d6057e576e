"""
Fog Check Service (crisis mode)

Builds the Crisis Surgeon context for a protocol, asks the model for feedback
and stores the result as an immutable FogCheck row.
"""

from typing import List, Optional
from datetime import datetime
from uuid import UUID
import logging

from openai import OpenAI
from sqlalchemy.orm import Session

from models import CrisisProtocol, FogCheck, FogCheckType, RecoveryCheckin
from services.crisis_surgeon import (
    CrisisContext,
    build_crisis_surgeon_prompt,
    parse_crisis_surgeon_response,
)
from services.llm_client import complete_json
from services.week_calculator import get_week_number

logger = logging.getLogger(__name__)


def build_crisis_context(
    protocol: CrisisProtocol,
    checkin: Optional[RecoveryCheckin] = None,
    now: Optional[datetime] = None,
) -> CrisisContext:
    return CrisisContext(
        crisis_type=protocol.crisis_type,
        burden_to_cut=protocol.burden_to_cut,
        oxygen_source=protocol.oxygen_source,
        is_burden_cut=bool(protocol.is_burden_cut),
        is_oxygen_scheduled=bool(protocol.is_oxygen_scheduled),
        oxygen_level_current=protocol.oxygen_level_current,
        oxygen_level_start=protocol.oxygen_level_start,
        weeks_since_start=get_week_number(protocol.created_at, now),
        protocol_completed=checkin.protocol_completed if checkin else None,
        oxygen_connected=checkin.oxygen_connected if checkin else None,
    )


def generate_crisis_fog_check(
    db: Session,
    client: Optional[OpenAI],
    user_id: UUID,
    protocol: CrisisProtocol,
    checkin: Optional[RecoveryCheckin] = None,
) -> FogCheck:
    """
    Generate and persist a CRISIS Fog Check. Commits.

    Raises LLMError when the model is unreachable; unusable model output
    falls back to the stock feedback instead.
    """
    context = build_crisis_context(protocol, checkin)
    raw = complete_json(client, build_crisis_surgeon_prompt(context))
    feedback = parse_crisis_surgeon_response(raw)

    fog_check = FogCheck(
        user_id=user_id,
        protocol_id=protocol.id,
        observation=feedback.triage_assessment,
        strategic_question=feedback.immediate_directive,
        fog_check_type=FogCheckType.CRISIS.value,
    )
    db.add(fog_check)
    db.commit()

    logger.info(f"Crisis fog check {fog_check.id} created for user {user_id} (week {context.weeks_since_start})")
    return fog_check


def list_crisis_fog_checks(db: Session, user_id: UUID, limit: int = 10) -> List[FogCheck]:
    return (
        db.query(FogCheck)
        .filter(FogCheck.user_id == user_id, FogCheck.fog_check_type == FogCheckType.CRISIS.value)
        .order_by(FogCheck.created_at.desc())
        .limit(limit)
        .all()
    )
