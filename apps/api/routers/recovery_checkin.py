"""
Recovery Check-in API Router

Weekly oxygen check-in for users in RECOVERY mode.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from openai import OpenAI
from typing import Optional
from uuid import UUID

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import RecoveryCheckinCreate, RecoveryCheckinListResponse, RecoveryCheckinResult
from services.llm_client import get_llm_client
from services.recovery_checkin_service import list_recovery_checkins, submit_recovery_checkin

router = APIRouter(prefix="/api/recovery-checkin", tags=["Recovery Check-in"])


@router.post("", response_model=RecoveryCheckinResult)
def create_recovery_checkin(
    body: RecoveryCheckinCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    llm_client: Optional[OpenAI] = Depends(get_llm_client),
):
    """
    Submit this week's check-in.

    One per protocol per ISO week. Awards check-in tokens, advances the streak
    and attaches a crisis Fog Check when the AI service responds.
    """
    result = submit_recovery_checkin(
        db,
        current_user,
        protocol_id=body.protocol_id,
        protocol_completed=body.protocol_completed,
        oxygen_connected=body.oxygen_connected,
        oxygen_level_current=body.oxygen_level_current,
        notes=body.notes,
        llm_client=llm_client,
    )
    return {
        "success": True,
        "checkin": result.checkin,
        "streak": result.streak,
        "fog_check": result.fog_check,
        "is_stable": result.is_stable,
        "tokens_awarded": result.tokens_awarded,
        "new_balance": result.new_balance,
    }


@router.get("", response_model=RecoveryCheckinListResponse)
def get_recovery_checkins(
    protocol_id: Optional[UUID] = Query(None, alias="protocolId"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"checkins": list_recovery_checkins(db, current_user, protocol_id)}
