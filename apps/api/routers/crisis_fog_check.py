"""
Crisis Fog Check API Router

Manual (re)generation of Crisis Surgeon feedback and its history.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from openai import OpenAI
from typing import Optional
import logging

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, ServiceError
from models import User
from schemas import FogCheckCreate, FogCheckCreateResponse, FogCheckListResponse
from services.crisis_protocol_service import get_latest_checkin, get_owned_protocol
from services.fog_check_service import generate_crisis_fog_check, list_crisis_fog_checks
from services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crisis-fog-check", tags=["Crisis Fog Check"])


@router.post("", response_model=FogCheckCreateResponse)
def create_crisis_fog_check(
    body: FogCheckCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    llm_client: Optional[OpenAI] = Depends(get_llm_client),
):
    if body.protocol_id is None:
        raise BadRequestError("Protocol ID required")

    protocol = get_owned_protocol(db, current_user.id, body.protocol_id)
    if not protocol:
        raise NotFoundError("Protocol")

    latest = get_latest_checkin(db, protocol.id)
    try:
        fog_check = generate_crisis_fog_check(db, llm_client, current_user.id, protocol, latest)
    except Exception as e:
        db.rollback()
        logger.error(f"[CRISIS_FOG_CHECK_ERROR] user={current_user.id} protocol={protocol.id}: {e}", exc_info=True)
        raise ServiceError("Failed to generate Crisis Fog Check")

    return {"success": True, "fog_check": fog_check}


@router.get("", response_model=FogCheckListResponse)
def get_crisis_fog_checks(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """The user's crisis Fog Checks, newest first."""
    return {"fog_checks": list_crisis_fog_checks(db, current_user.id, limit)}
