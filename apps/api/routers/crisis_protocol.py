"""
Crisis Protocol API Router

Crisis triage entry point: creating a protocol puts the user into RECOVERY
mode. Creation is rate limited (5 per hour per user).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.config import settings
from core.database import get_db
from core.rate_limit import STRICT_LIMIT, check_rate_limit, rate_limit_exceeded_response
from models import User
from schemas import (
    ActiveProtocolDetail,
    ActiveProtocolResponse,
    CrisisGuidanceResponse,
    CrisisProtocolCreate,
    CrisisProtocolCreateResponse,
    CrisisProtocolUpdate,
    CrisisProtocolUpdateResponse,
    RecoveryCheckinResponse,
)
from services import crisis_protocol_service
from services.crisis_surgeon import get_crisis_guidance

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crisis-protocol", tags=["Crisis Protocol"])


@router.post("", response_model=CrisisProtocolCreateResponse)
def create_crisis_protocol(
    body: CrisisProtocolCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Create a crisis protocol and enter RECOVERY mode.

    Awards the crisis triage tokens. Only one active protocol per user.
    """
    if settings.RATE_LIMIT_ENABLED:
        result = check_rate_limit(str(current_user.id), "crisis_protocol", STRICT_LIMIT)
        if not result.success:
            logger.warning(f"Crisis protocol creation rate limited for user {current_user.id}")
            return rate_limit_exceeded_response(result)

    created = crisis_protocol_service.create_crisis_protocol(
        db,
        current_user,
        crisis_type=body.crisis_type,
        burden_to_cut=body.burden_to_cut,
        oxygen_source=body.oxygen_source,
    )
    return {
        "success": True,
        "protocol": created.protocol,
        "tokens_awarded": created.tokens_awarded,
        "new_balance": created.new_balance,
    }


@router.get("", response_model=ActiveProtocolResponse)
def get_active_protocol(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """The active protocol with its latest check-in and oxygen guidance, or protocol=null."""
    protocol = crisis_protocol_service.get_active_protocol(db, current_user.id)
    if not protocol:
        return {"protocol": None}

    latest = crisis_protocol_service.get_latest_checkin(db, protocol.id)
    detail = ActiveProtocolDetail.model_validate(protocol)
    detail.latest_checkin = RecoveryCheckinResponse.model_validate(latest) if latest else None
    detail.guidance = CrisisGuidanceResponse.model_validate(get_crisis_guidance(protocol.oxygen_level_current))
    return {"protocol": detail}


@router.patch("", response_model=CrisisProtocolUpdateResponse)
def update_crisis_protocol(
    body: CrisisProtocolUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    protocol = crisis_protocol_service.update_crisis_protocol(
        db,
        current_user,
        protocol_id=body.protocol_id,
        is_burden_cut=body.is_burden_cut,
        is_oxygen_scheduled=body.is_oxygen_scheduled,
        complete=body.complete,
    )
    return {"success": True, "protocol": protocol}
