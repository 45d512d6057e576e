"""
Mode Switch API Router

Users may enter RECOVERY mode at any time (starting the 14-day lock).
Leaving RECOVERY goes through /api/transition only.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from core.auth import get_current_user
from core.database import get_db
from core.exceptions import BadRequestError
from models import OperatingMode, User
from schemas import ModeStatusResponse, ModeSwitchRequest, ModeSwitchResponse
from services.week_calculator import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mode-switch", tags=["Mode Switch"])


@router.get("", response_model=ModeStatusResponse)
def get_mode(current_user: User = Depends(get_current_user)):
    return {
        "current_mode": current_user.operating_mode,
        "recovery_start_date": current_user.recovery_start_date,
    }


@router.post("", response_model=ModeSwitchResponse)
def switch_mode(
    body: ModeSwitchRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    valid_modes = {m.value for m in OperatingMode}
    if body.target_mode not in valid_modes:
        raise BadRequestError("Invalid mode. Must be ASCENT or RECOVERY")

    if current_user.operating_mode == body.target_mode:
        return {
            "success": True,
            "current_mode": current_user.operating_mode,
            "already_in_mode": True,
            "recovery_start_date": current_user.recovery_start_date,
            "message": f"Already in {body.target_mode} mode",
        }

    if body.target_mode == OperatingMode.RECOVERY.value:
        current_user.operating_mode = OperatingMode.RECOVERY.value
        current_user.recovery_start_date = utcnow()
        db.commit()
        logger.info(f"User {current_user.id} entered RECOVERY mode. 14-day lock started.")
        return {
            "success": True,
            "current_mode": current_user.operating_mode,
            "recovery_start_date": current_user.recovery_start_date,
            "message": "Recovery protocol initiated. 14-day minimum commitment started.",
        }

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "requiresTransition": True,
            "detail": "Use the transition endpoint to return to Ascent mode",
        },
    )
