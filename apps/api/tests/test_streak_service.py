"""Tests for weekly streaks and Life Lines."""
from datetime import date, datetime, timedelta, timezone

from models import RecoveryCheckin
from services.streak_service import get_streak_data, update_streak_on_log

from conftest import make_protocol, make_user

WEEK_1 = date(2026, 1, 5)


def week(n: int) -> date:
    """Monday of the n-th week after WEEK_1 (0-indexed)."""
    return WEEK_1 + timedelta(weeks=n)


class TestUpdateStreak:
    def test_first_log_starts_streak(self, db_session, test_user):
        result = update_streak_on_log(db_session, test_user, week(0))

        assert result.current == 1
        assert result.longest == 1
        assert test_user.current_streak == 1
        assert test_user.last_log_date == week(0)

    def test_consecutive_week_extends(self, db_session, test_user):
        update_streak_on_log(db_session, test_user, week(0))
        result = update_streak_on_log(db_session, test_user, week(1))

        assert result.current == 2
        assert result.streak_broken is False

    def test_same_week_keeps_streak(self, db_session, test_user):
        update_streak_on_log(db_session, test_user, week(0))
        result = update_streak_on_log(db_session, test_user, week(0))

        assert result.current == 1
        assert result.message == "Already logged this week"

    def test_every_fourth_week_earns_life_line(self, db_session, test_user):
        results = [update_streak_on_log(db_session, test_user, week(n)) for n in range(8)]

        assert [r.life_lines_earned for r in results] == [0, 0, 0, 1, 0, 0, 0, 1]
        assert test_user.life_lines == 2
        assert test_user.current_streak == 8

    def test_missed_week_covered_by_life_line(self, db_session):
        user = make_user(db_session, current_streak=5, longest_streak=5, life_lines=1, last_log_date=week(0))

        # week(1) skipped
        result = update_streak_on_log(db_session, user, week(2))

        assert result.streak_frozen is True
        assert result.life_lines_used == 1
        assert result.current == 6
        assert user.life_lines == 0
        assert user.longest_streak == 6

    def test_partial_cover_breaks_and_consumes_life_lines(self, db_session):
        user = make_user(db_session, current_streak=9, longest_streak=9, life_lines=1, last_log_date=week(0))

        # three weeks missed, one Life Line held
        result = update_streak_on_log(db_session, user, week(4))

        assert result.streak_broken is True
        assert result.life_lines_used == 1
        assert result.current == 1
        assert user.life_lines == 0
        assert user.longest_streak == 9

    def test_missed_week_without_life_lines_resets(self, db_session):
        user = make_user(db_session, current_streak=3, longest_streak=7, life_lines=0, last_log_date=week(0))

        result = update_streak_on_log(db_session, user, week(3))

        assert result.streak_broken is True
        assert result.life_lines_used == 0
        assert user.current_streak == 1
        assert user.longest_streak == 7


class TestStreakData:
    def test_consistency_is_capped_at_100(self, db_session, test_user):
        protocol = make_protocol(db_session, test_user)
        for n in range(3):
            db_session.add(RecoveryCheckin(user_id=test_user.id, protocol_id=protocol.id, week_of=week(n)))
        db_session.commit()

        data = get_streak_data(db_session, test_user)

        # Account is brand new: one possible week, three logged
        assert data.weeks_logged == 3
        assert data.consistency_percentage == 100

    def test_consistency_against_account_age(self, db_session):
        user = make_user(db_session, created_at=datetime.now(timezone.utc) - timedelta(weeks=4, days=1))
        protocol = make_protocol(db_session, user)
        db_session.add(RecoveryCheckin(user_id=user.id, protocol_id=protocol.id, week_of=week(0)))
        db_session.commit()

        data = get_streak_data(db_session, user)

        assert data.weeks_logged == 1
        assert data.consistency_percentage == 25
