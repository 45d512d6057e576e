"""
Streak API Router
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import StreakDataResponse
from services.streak_service import get_streak_data

router = APIRouter(prefix="/api/streak", tags=["Streak"])


@router.get("", response_model=StreakDataResponse)
def get_streak(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return get_streak_data(db, current_user)
