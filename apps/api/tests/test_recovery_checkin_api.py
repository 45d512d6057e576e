"""
Recovery Check-in Tests

Weekly check-in submission: validation, the once-per-week rule, protocol
oxygen tracking, rewards, streaks and the best-effort Crisis Fog Check.
"""
from datetime import datetime, timedelta, timezone

import pytest

from models import FogCheck, OperatingMode, RecoveryCheckin, TokenTransaction
from services.recovery_checkin_service import submit_recovery_checkin

from conftest import auth_headers, make_protocol, make_user


def _checkin(client, user, protocol, **fields):
    body = {"protocolId": str(protocol.id), **fields}
    return client.post("/api/recovery-checkin", json=body, headers=auth_headers(user))


class TestSubmitCheckin:
    def test_first_checkin(self, client, db_session, recovery_user, active_protocol):
        response = _checkin(
            client, recovery_user, active_protocol,
            protocolCompleted=True, oxygenConnected=False, oxygenLevelCurrent=4, notes="  rough week  ",
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["success"] is True
        assert data["tokensAwarded"] == 50
        assert data["newBalance"] == 50
        assert data["isStable"] is False
        assert data["checkin"]["oxygenLevelCurrent"] == 4
        assert data["streak"]["current"] == 1
        assert data["fogCheck"] is None  # no LLM configured

        db_session.refresh(active_protocol)
        assert active_protocol.oxygen_level_start == 4
        assert active_protocol.oxygen_level_current == 4
        stored = db_session.query(RecoveryCheckin).one()
        assert stored.notes == "rough week"
        txn = db_session.query(TokenTransaction).one()
        assert txn.transaction_type == "RECOVERY_CHECKIN"
        assert txn.related_entity_id == stored.id

    def test_second_checkin_same_week_rejected(self, client, db_session, recovery_user, active_protocol):
        assert _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=5).status_code == 200

        response = _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=6)

        assert response.status_code == 400
        assert response.json()["detail"] == "Already checked in this week."
        assert db_session.query(RecoveryCheckin).count() == 1
        db_session.refresh(recovery_user)
        assert recovery_user.token_balance == 50
        db_session.refresh(active_protocol)
        assert active_protocol.oxygen_level_current == 5

    @pytest.mark.parametrize("level", [0, 11, -1])
    def test_oxygen_level_out_of_range(self, client, db_session, recovery_user, active_protocol, level):
        response = _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=level)

        assert response.status_code == 400
        assert response.json()["detail"] == "Oxygen level must be between 1 and 10."
        assert db_session.query(RecoveryCheckin).count() == 0

    @pytest.mark.parametrize("level", [1, 10])
    def test_oxygen_level_bounds_accepted(self, client, recovery_user, active_protocol, level):
        assert _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=level).status_code == 200

    def test_oxygen_level_optional(self, client, db_session, recovery_user, active_protocol):
        response = _checkin(client, recovery_user, active_protocol, protocolCompleted=True)

        assert response.status_code == 200
        db_session.refresh(active_protocol)
        assert active_protocol.oxygen_level_current is None
        assert active_protocol.oxygen_level_start is None

    def test_start_level_only_set_once(self, db_session, recovery_user, active_protocol):
        now = datetime(2026, 2, 2, 9, 0, tzinfo=timezone.utc)
        submit_recovery_checkin(db_session, recovery_user, active_protocol.id, oxygen_level_current=3, now=now)
        submit_recovery_checkin(
            db_session, recovery_user, active_protocol.id, oxygen_level_current=6, now=now + timedelta(weeks=1)
        )

        db_session.refresh(active_protocol)
        assert active_protocol.oxygen_level_start == 3
        assert active_protocol.oxygen_level_current == 6

    def test_missing_protocol_id(self, client, recovery_user):
        response = client.post("/api/recovery-checkin", json={"oxygenLevelCurrent": 5}, headers=auth_headers(recovery_user))

        assert response.status_code == 400
        assert response.json()["detail"] == "Protocol ID required"

    def test_other_users_protocol_is_not_found(self, client, db_session, test_user, active_protocol):
        response = _checkin(client, test_user, active_protocol, oxygenLevelCurrent=5)

        assert response.status_code == 404
        assert db_session.query(RecoveryCheckin).count() == 0

    def test_requires_auth(self, client, active_protocol):
        response = client.post("/api/recovery-checkin", json={"protocolId": str(active_protocol.id)})

        assert response.status_code == 401


class TestCheckinFogCheck:
    def test_fog_check_attached(self, client, db_session, llm_client, recovery_user, active_protocol):
        response = _checkin(client, recovery_user, active_protocol, protocolCompleted=True, oxygenLevelCurrent=6)

        fog_check = response.json()["fogCheck"]
        assert fog_check["observation"] == "You cut the meeting. Oxygen is rising."
        assert fog_check["strategicQuestion"] == "Call your sister before Friday."
        assert fog_check["fogCheckType"] == "CRISIS"

        prompt = llm_client.completions.calls[0]["messages"][0]["content"]
        assert "Protocol Completed: Yes" in prompt
        assert "Week: 3 in Recovery Mode" in prompt  # protocol is 20 days old

    def test_llm_failure_still_records_checkin(self, client, db_session, failing_llm_client, recovery_user, active_protocol):
        response = _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=6)

        assert response.status_code == 200
        assert response.json()["fogCheck"] is None
        assert db_session.query(RecoveryCheckin).count() == 1
        assert db_session.query(FogCheck).count() == 0
        db_session.refresh(recovery_user)
        assert recovery_user.token_balance == 50

    def test_unparseable_model_output_uses_fallback(self, client, db_session, llm_client, recovery_user, active_protocol):
        llm_client.completions.content = "I refuse to answer in JSON"

        response = _checkin(client, recovery_user, active_protocol, oxygenLevelCurrent=6)

        fog_check = response.json()["fogCheck"]
        assert fog_check["strategicQuestion"] == "Did you complete the action you committed to this week?"


class TestStability:
    def test_stable_after_three_good_weeks(self, db_session):
        user = make_user(
            db_session,
            mode=OperatingMode.RECOVERY,
            recovery_start_date=datetime(2026, 1, 1, tzinfo=timezone.utc),
        )
        protocol = make_protocol(db_session, user, created_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
        first_week = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)

        results = [
            submit_recovery_checkin(
                db_session, user, protocol.id, oxygen_level_current=level, now=first_week + timedelta(weeks=i)
            )
            for i, level in enumerate([4, 5, 7, 8, 9])
        ]

        assert [r.is_stable for r in results] == [False, False, False, False, True]
        assert results[-1].streak.current == 5
        assert results[3].streak.life_lines_earned == 1
        assert results[-1].new_balance == 250


class TestListCheckins:
    def test_list_newest_first(self, client, db_session, recovery_user, active_protocol):
        first_week = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)
        for i in range(3):
            submit_recovery_checkin(
                db_session, recovery_user, active_protocol.id, oxygen_level_current=5 + i, now=first_week + timedelta(weeks=i)
            )

        response = client.get(
            "/api/recovery-checkin",
            params={"protocolId": str(active_protocol.id)},
            headers=auth_headers(recovery_user),
        )

        assert response.status_code == 200
        weeks = [c["weekOf"] for c in response.json()["checkins"]]
        assert weeks == ["2026-01-19", "2026-01-12", "2026-01-05"]

    def test_list_requires_protocol_id(self, client, recovery_user):
        response = client.get("/api/recovery-checkin", headers=auth_headers(recovery_user))

        assert response.status_code == 400

    def test_list_excludes_other_users(self, client, db_session, test_user, active_protocol, recovery_user):
        submit_recovery_checkin(db_session, recovery_user, active_protocol.id, oxygen_level_current=5)

        response = client.get(
            "/api/recovery-checkin",
            params={"protocolId": str(active_protocol.id)},
            headers=auth_headers(test_user),
        )

        assert response.json()["checkins"] == []
