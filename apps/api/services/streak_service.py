"""
Weekly Streak Service

Tracks consecutive logged weeks and Life Lines.

Rules:
- The first weekly entry starts a streak of 1.
- An entry exactly one week after the previous one extends the streak.
  Every 4th consecutive week earns a Life Line.
- Missed weeks are covered by Life Lines when enough are held: the streak is
  frozen (continues) and the Life Lines are consumed. Otherwise the streak
  resets to 1 and any held Life Lines are lost.
- A second entry in the same week leaves the streak untouched.
"""

from typing import Optional
from dataclasses import dataclass
from datetime import date
import logging

from sqlalchemy.orm import Session

from models import RecoveryCheckin, User
from services.week_calculator import as_utc, utcnow, weeks_between

logger = logging.getLogger(__name__)


LIFE_LINE_INTERVAL_WEEKS = 4


@dataclass
class StreakUpdate:
    """Outcome of a single weekly entry."""
    current: int
    longest: int
    life_lines: int
    life_lines_used: int = 0
    life_lines_earned: int = 0
    streak_broken: bool = False
    streak_frozen: bool = False
    message: str = ""


def update_streak_on_log(db: Session, user: User, week_of: date) -> StreakUpdate:
    """
    Apply one weekly entry (check-in or log) for `week_of` to the user's streak.

    Mutates the user row in the caller's transaction; does not commit.
    """
    current = user.current_streak or 0
    longest = user.longest_streak or 0
    life_lines = user.life_lines or 0

    if user.last_log_date is None:
        result = StreakUpdate(
            current=1,
            longest=max(1, longest),
            life_lines=life_lines,
            message="First log! Streak begins.",
        )
    else:
        weeks_missed = weeks_between(user.last_log_date, week_of)

        if weeks_missed <= 0:
            return StreakUpdate(
                current=current,
                longest=longest,
                life_lines=life_lines,
                message="Already logged this week",
            )

        if weeks_missed == 1:
            new_streak = current + 1
            result = StreakUpdate(
                current=new_streak,
                longest=max(new_streak, longest),
                life_lines=life_lines,
                message=f"Streak continues! Week {new_streak}",
            )
            if new_streak % LIFE_LINE_INTERVAL_WEEKS == 0:
                result.life_lines += 1
                result.life_lines_earned = 1
                result.message = f"Streak milestone! Week {new_streak}. Life Line earned."
        else:
            # The current week is not a miss
            actually_missed = weeks_missed - 1
            if life_lines >= actually_missed:
                new_streak = current + 1
                result = StreakUpdate(
                    current=new_streak,
                    longest=max(new_streak, longest),
                    life_lines=life_lines - actually_missed,
                    life_lines_used=actually_missed,
                    streak_frozen=True,
                    message=f"Streak frozen! Used {actually_missed} Life Line(s). Streak continues.",
                )
            elif life_lines > 0:
                result = StreakUpdate(
                    current=1,
                    longest=longest,
                    life_lines=0,
                    life_lines_used=life_lines,
                    streak_broken=True,
                    message=f"Streak broken. Used {life_lines} Life Line(s), but missed too many weeks.",
                )
            else:
                result = StreakUpdate(
                    current=1,
                    longest=longest,
                    life_lines=0,
                    streak_broken=True,
                    message=f"Streak broken. Missed {actually_missed} week(s) with no Life Lines.",
                )

    user.current_streak = result.current
    user.longest_streak = result.longest
    user.life_lines = result.life_lines
    user.last_log_date = week_of
    db.flush()

    if result.streak_broken:
        logger.info(f"Streak reset for user {user.id} (previous streak {current})")
    return result


@dataclass
class StreakData:
    current_streak: int
    longest_streak: int
    life_lines: int
    last_log_date: Optional[date]
    weeks_logged: int
    consistency_percentage: int


def get_streak_data(db: Session, user: User) -> StreakData:
    """Streak summary with a consistency percentage (logged weeks / account age in weeks, capped at 100)."""
    weeks_logged = db.query(RecoveryCheckin).filter(RecoveryCheckin.user_id == user.id).count()

    account_age_days = (utcnow() - as_utc(user.created_at)).days
    possible_weeks = max(1, account_age_days // 7)
    consistency = round(weeks_logged / possible_weeks * 100)

    return StreakData(
        current_streak=user.current_streak or 0,
        longest_streak=user.longest_streak or 0,
        life_lines=user.life_lines or 0,
        last_log_date=user.last_log_date,
        weeks_logged=weeks_logged,
        consistency_percentage=min(100, consistency),
    )
