"""
Tokens API Router

Read-only views of the reward ledger.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.auth import get_current_user
from core.database import get_db
from models import User
from schemas import TokenBalanceResponse, TokenHistoryResponse, TokenStatsResponse
from services import token_service

router = APIRouter(prefix="/api/tokens", tags=["Tokens"])


@router.get("/balance", response_model=TokenBalanceResponse)
def get_balance(current_user: User = Depends(get_current_user)):
    return token_service.get_token_balance(current_user)


@router.get("/history", response_model=TokenHistoryResponse)
def get_history(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Most recent ledger entries first."""
    return {"transactions": token_service.get_token_history(db, current_user.id, limit)}


@router.get("/stats", response_model=TokenStatsResponse)
def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return token_service.get_token_stats(db, current_user)
