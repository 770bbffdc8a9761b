# tests/test_response_service.py
"""Unit tests for recording firefighter responses (update-only, last write wins)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime, timedelta
from osp_alarm.errors import ValidationError, NotFoundError, AlarmClosedError
from osp_alarm.models import AlarmResponse
from osp_alarm.services.alarm_trigger_service import trigger_alarm
from osp_alarm.services.alarm_lifecycle_service import close_alarm
from osp_alarm.services.response_service import record_response


def _rows(db, alarm_id):
    db.expire_all()
    return {r.firefighter_id: r for r in
            db.query(AlarmResponse).filter(AlarmResponse.alarm_id == alarm_id).all()}


class TestRecordResponse:
    def test_walkthrough_change_of_mind(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id

        result = record_response(db, alarm_id, 1, "TAK")
        assert result["summary"] == {"total": 3, "confirmed": 1, "not_confirmed": 2}

        result = record_response(db, alarm_id, 2, "TAK")
        assert result["summary"] == {"total": 3, "confirmed": 2, "not_confirmed": 1}

        result = record_response(db, alarm_id, 1, "NIE")
        assert result["summary"] == {"total": 3, "confirmed": 1, "not_confirmed": 2}
        assert len(_rows(db, alarm_id)) == 3

    def test_repeated_responses_never_insert(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        for response_type in ("TAK", "NIE", "TAK", "TAK"):
            record_response(db, alarm_id, 3, response_type)
        assert db.query(AlarmResponse).count() == 3
        assert _rows(db, alarm_id)[3].response_type == "TAK"

    def test_sets_responded_at(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        record_response(db, alarm_id, 2, "NIE")
        rows = _rows(db, alarm_id)
        assert rows[2].responded_at is not None
        assert rows[1].responded_at is None

    def test_result_shape(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        result = record_response(db, alarm_id, 1, "TAK")
        assert result["success"] is True
        assert result["firefighter_id"] == 1
        assert result["response_type"] == "TAK"
        assert set(result["trainingSummary"]) == {"driver_c", "first_aid"}
        assert result["responses"][0]["firefighter_id"] == 1

    @pytest.mark.parametrize("firefighter_id,response_type", [
        (None, "TAK"), (1, None), (1, ""), (1, "MAYBE"), (1, "tak"),
    ])
    def test_invalid_input_rejected_without_mutation(self, db, roster, firefighter_id, response_type):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        with pytest.raises(ValidationError):
            record_response(db, alarm_id, firefighter_id, response_type)
        rows = _rows(db, alarm_id)
        assert all(r.response_type == "NIE" and r.responded_at is None for r in rows.values())

    def test_unknown_alarm(self, db, roster):
        with pytest.raises(NotFoundError):
            record_response(db, 999, 1, "TAK")

    def test_unseeded_firefighter(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        with pytest.raises(NotFoundError):
            record_response(db, alarm_id, 4, "TAK")
        assert db.query(AlarmResponse).count() == 3

    def test_unknown_firefighter(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        with pytest.raises(NotFoundError):
            record_response(db, alarm_id, 12345, "TAK")


class TestClosedAlarm:
    def test_expired_alarm_rejects_response(self, db, roster):
        old = datetime.utcnow() - timedelta(minutes=10)
        alarm_id = trigger_alarm(db, "608101402", old).alarm_id
        with pytest.raises(AlarmClosedError):
            record_response(db, alarm_id, 1, "TAK")
        assert _rows(db, alarm_id)[1].response_type == "NIE"

    def test_closed_alarm_rejects_response(self, db, roster):
        alarm_id = trigger_alarm(db, "608101402").alarm_id
        close_alarm(db, alarm_id)
        with pytest.raises(AlarmClosedError):
            record_response(db, alarm_id, 1, "TAK")
