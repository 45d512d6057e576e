"""
Transition API Router

GET reports eligibility to leave RECOVERY mode; POST performs the move back
to the Vision Track.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import BadRequestError, NotFoundError, ServiceError
from models import User
from schemas import TransitionEligibilityResponse, TransitionRequest, TransitionResponse
from services.transition_service import check_transition_eligibility, transition_to_vision_track

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transition", tags=["Transition"])


@router.get("", response_model=TransitionEligibilityResponse)
def get_transition_eligibility(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return check_transition_eligibility(db, current_user.id)


@router.post("", response_model=TransitionResponse)
def execute_transition(
    body: TransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Complete the protocol and return to ASCENT mode (+150 tokens)."""
    if body.protocol_id is None:
        raise BadRequestError("Protocol ID required")

    result = transition_to_vision_track(db, current_user.id, body.protocol_id)
    if not result.success:
        if result.error_code == "NOT_FOUND":
            raise NotFoundError("Crisis protocol")
        if result.error_code == "INELIGIBLE":
            raise BadRequestError(result.message, error_code="INELIGIBLE")
        raise ServiceError(result.message)

    return {
        "success": True,
        "message": result.message,
        "tokens_awarded": result.tokens_awarded,
        "new_balance": result.new_balance,
    }
