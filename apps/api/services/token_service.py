"""
Reward Ledger (token service)

Append-only TokenTransaction rows plus a denormalized running balance on the
user. Every write happens in the caller's transaction: these functions flush
but never commit, so a reward can be made atomic with the action it rewards.
"""

from typing import Dict, List, Optional
from dataclasses import dataclass
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from models import TokenTransaction, TransactionType, User

logger = logging.getLogger(__name__)


TOKEN_AMOUNTS = {
    TransactionType.CRISIS_COMPLETE: 100,
    TransactionType.RECOVERY_CHECKIN: 50,
    TransactionType.RECOVERY_COMPLETE: 150,
}


class LedgerError(Exception):
    """Ledger write rejected."""


class InsufficientTokensError(LedgerError):
    pass


@dataclass
class LedgerEntryResult:
    new_balance: int
    transaction_id: UUID


def _lock_user(db: Session, user_id: UUID) -> User:
    # populate_existing: the caller's User is usually already in the identity map
    # with a balance read before the lock was taken
    user = (
        db.query(User)
        .filter(User.id == user_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not user:
        raise LedgerError(f"User not found: {user_id}")
    return user


def _append(
    db: Session,
    user: User,
    amount: int,
    transaction_type: TransactionType,
    description: str,
    related_entity_id: Optional[UUID],
) -> TokenTransaction:
    txn = TokenTransaction(
        user_id=user.id,
        amount=amount,
        transaction_type=transaction_type.value,
        description=description,
        related_entity_id=related_entity_id,
        balance_after=user.token_balance,
    )
    db.add(txn)
    db.flush()
    return txn


def award_tokens(
    db: Session,
    user_id: UUID,
    amount: int,
    transaction_type: TransactionType,
    description: Optional[str] = None,
    related_entity_id: Optional[UUID] = None,
) -> LedgerEntryResult:
    """Credit `amount` tokens and record the transaction."""
    if amount <= 0:
        raise LedgerError("Award amount must be positive")

    user = _lock_user(db, user_id)
    user.token_balance = (user.token_balance or 0) + amount
    user.total_tokens_earned = (user.total_tokens_earned or 0) + amount

    txn = _append(
        db, user, amount, transaction_type,
        description or f"Earned {amount} tokens", related_entity_id,
    )
    logger.info(f"Awarded {amount} tokens to user {user_id} ({transaction_type.value}). New balance: {user.token_balance}")
    return LedgerEntryResult(new_balance=user.token_balance, transaction_id=txn.id)


def deduct_tokens(
    db: Session,
    user_id: UUID,
    amount: int,
    transaction_type: TransactionType,
    description: Optional[str] = None,
    related_entity_id: Optional[UUID] = None,
) -> LedgerEntryResult:
    """Debit `amount` tokens; the ledger row carries a negative amount."""
    if amount <= 0:
        raise LedgerError("Deduction amount must be positive")

    user = _lock_user(db, user_id)
    if (user.token_balance or 0) < amount:
        raise InsufficientTokensError("Insufficient token balance")

    user.token_balance -= amount
    txn = _append(
        db, user, -amount, transaction_type,
        description or f"Spent {amount} tokens", related_entity_id,
    )
    logger.info(f"Deducted {amount} tokens from user {user_id} ({transaction_type.value}). New balance: {user.token_balance}")
    return LedgerEntryResult(new_balance=user.token_balance, transaction_id=txn.id)


def get_token_balance(user: User) -> Dict[str, int]:
    earned = user.total_tokens_earned or 0
    balance = user.token_balance or 0
    return {
        "current_balance": balance,
        "total_earned": earned,
        "total_spent": earned - balance,
    }


def get_token_history(db: Session, user_id: UUID, limit: int = 20) -> List[TokenTransaction]:
    return (
        db.query(TokenTransaction)
        .filter(TokenTransaction.user_id == user_id)
        .order_by(TokenTransaction.created_at.desc())
        .limit(limit)
        .all()
    )


def get_token_stats(db: Session, user: User) -> Dict:
    """Balance summary plus the five most recent transactions."""
    stats = get_token_balance(user)
    stats["recent_transactions"] = get_token_history(db, user.id, limit=5)
    return stats


def has_been_awarded(db: Session, user_id: UUID, related_entity_id: UUID) -> bool:
    """True if any ledger row already references this entity (double-award guard)."""
    return db.query(TokenTransaction.id).filter(
        TokenTransaction.user_id == user_id,
        TokenTransaction.related_entity_id == related_entity_id,
    ).first() is not None
