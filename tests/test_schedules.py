"""
Tests for trainer schedules and conflict detection
"""
import pytest
from datetime import datetime
from scheduling.conflicts import find_conflicts
from scheduling.models import Schedule


def schedule_payload(start, end, trainer_id=7, status="confirmed", title="Python Basics"):
    return {
        "title": title,
        "course_id": 3,
        "trainer_id": trainer_id,
        "student_ids": [1, 2],
        "start_time": start,
        "end_time": end,
        "status": status,
    }


@pytest.fixture
def morning_class(db_session):
    schedule = Schedule(
        title="Morning class",
        course_id=3,
        trainer_id=7,
        student_ids=[1],
        start_time=datetime(2026, 3, 2, 9, 0),
        end_time=datetime(2026, 3, 2, 11, 0),
        status="confirmed",
    )
    db_session.add(schedule)
    db_session.commit()
    db_session.refresh(schedule)
    return schedule


@pytest.mark.integration
class TestFindConflicts:
    def test_overlap_detected(self, db_session, morning_class):
        conflicts = find_conflicts(db_session, 7, datetime(2026, 3, 2, 10, 0), datetime(2026, 3, 2, 12, 0))
        assert [s.id for s in conflicts] == [morning_class.id]

    def test_contained_interval_conflicts(self, db_session, morning_class):
        assert find_conflicts(db_session, 7, datetime(2026, 3, 2, 9, 30), datetime(2026, 3, 2, 10, 0))

    def test_back_to_back_is_not_a_conflict(self, db_session, morning_class):
        assert find_conflicts(db_session, 7, datetime(2026, 3, 2, 11, 0), datetime(2026, 3, 2, 12, 0)) == []
        assert find_conflicts(db_session, 7, datetime(2026, 3, 2, 8, 0), datetime(2026, 3, 2, 9, 0)) == []

    def test_other_trainer_is_free(self, db_session, morning_class):
        assert find_conflicts(db_session, 8, datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 11, 0)) == []

    def test_cancelled_schedules_ignored(self, db_session, morning_class):
        morning_class.status = "cancelled"
        db_session.commit()
        assert find_conflicts(db_session, 7, datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 11, 0)) == []

    def test_schedule_excluded_from_its_own_check(self, db_session, morning_class):
        conflicts = find_conflicts(
            db_session, 7, datetime(2026, 3, 2, 9, 0), datetime(2026, 3, 2, 11, 0),
            exclude_schedule_id=morning_class.id,
        )
        assert conflicts == []


@pytest.mark.integration
class TestSchedulesAPI:
    def test_create_schedule(self, client, auth_headers):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T09:00:00", "2026-03-02T11:00:00"),
            headers=auth_headers,
        )
        assert response.status_code == 201
        assert response.json()["created_by"] == 1
        assert response.json()["student_ids"] == [1, 2]

    def test_conflicting_create_rejected(self, client, auth_headers, morning_class):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T10:30:00", "2026-03-02T12:00:00"),
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"]["conflicting_ids"] == [morning_class.id]

    def test_cancelled_schedule_can_overlap(self, client, auth_headers, morning_class):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T10:00:00", "2026-03-02T12:00:00", status="cancelled"),
            headers=auth_headers,
        )
        assert response.status_code == 201

    def test_end_before_start_rejected(self, client, auth_headers):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T11:00:00", "2026-03-02T11:00:00"),
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_update_checks_conflicts_excluding_itself(self, client, auth_headers, morning_class, db_session):
        # Moving within its own slot is fine
        moved = client.patch(
            f"/api/schedules/{morning_class.id}",
            json={"end_time": "2026-03-02T10:30:00"},
            headers=auth_headers,
        )
        assert moved.status_code == 200

        other = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T13:00:00", "2026-03-02T14:00:00", title="Afternoon"),
            headers=auth_headers,
        ).json()
        clash = client.patch(
            f"/api/schedules/{other['id']}",
            json={"start_time": "2026-03-02T10:00:00"},
            headers=auth_headers,
        )
        assert clash.status_code == 409

        inverted = client.patch(
            f"/api/schedules/{other['id']}",
            json={"end_time": "2026-03-02T12:00:00"},
            headers=auth_headers,
        )
        assert inverted.status_code == 422

    def test_check_conflicts_with_date_and_times(self, client, auth_headers, morning_class):
        response = client.post(
            "/api/schedules/check-conflicts",
            json={"trainer_id": 7, "date": "2026-03-02", "start_time": "10:00", "end_time": "10:30"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["has_conflict"] is True
        assert body["conflicts"][0]["id"] == morning_class.id

    def test_check_conflicts_free_slot(self, client, auth_headers, morning_class):
        response = client.post(
            "/api/schedules/check-conflicts",
            json={"trainer_id": 7, "start_time": "2026-03-02T11:00:00", "end_time": "2026-03-02T12:00:00"},
            headers=auth_headers,
        )
        assert response.json() == {"has_conflict": False, "conflicts": []}

    def test_check_conflicts_needs_date_for_times(self, client, auth_headers):
        response = client.post(
            "/api/schedules/check-conflicts",
            json={"trainer_id": 7, "start_time": "10:00", "end_time": "11:00"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_read_and_delete(self, client, auth_headers, morning_class):
        assert client.get(f"/api/schedules/{morning_class.id}", headers=auth_headers).json()["title"] == "Morning class"
        listed = client.get("/api/schedules", params={"trainer_id": 7}, headers=auth_headers).json()
        assert len(listed) == 1
        assert client.delete(f"/api/schedules/{morning_class.id}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/schedules/{morning_class.id}", headers=auth_headers).status_code == 404


@pytest.mark.integration
class TestTimezoneAwareInput:
    def test_create_with_utc_suffix(self, client, auth_headers, db_session):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-03T09:00:00Z", "2026-03-03T10:00:00Z"),
            headers=auth_headers,
        )
        assert response.status_code == 201

        stored = db_session.query(Schedule).one()
        assert stored.start_time == datetime(2026, 3, 3, 9, 0)
        assert stored.end_time == datetime(2026, 3, 3, 10, 0)

    def test_offset_converted_before_conflict_check(self, client, auth_headers, morning_class):
        # 13:00+04:00 is 09:00 UTC, inside the morning class
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-02T13:00:00+04:00", "2026-03-02T14:00:00+04:00"),
            headers=auth_headers,
        )
        assert response.status_code == 409

    def test_mixed_naive_and_aware_times(self, client, auth_headers):
        response = client.post(
            "/api/schedules",
            json=schedule_payload("2026-03-03T09:00:00", "2026-03-03T08:00:00Z"),
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_patch_aware_end_time(self, client, auth_headers, morning_class):
        response = client.patch(
            f"/api/schedules/{morning_class.id}",
            json={"end_time": "2026-03-02T11:30:00Z"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["end_time"] == "2026-03-02T11:30:00"

        inverted = client.patch(
            f"/api/schedules/{morning_class.id}",
            json={"end_time": "2026-03-02T08:00:00Z"},
            headers=auth_headers,
        )
        assert inverted.status_code == 422

    def test_check_conflicts_with_aware_datetimes(self, client, auth_headers, morning_class):
        response = client.post(
            "/api/schedules/check-conflicts",
            json={"trainer_id": 7, "start_time": "2026-03-02T10:00:00Z", "end_time": "2026-03-02T10:30:00"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["has_conflict"] is True

    def test_null_for_required_column_rejected(self, client, auth_headers, morning_class):
        response = client.patch(
            f"/api/schedules/{morning_class.id}",
            json={"title": None},
            headers=auth_headers,
        )
        assert response.status_code == 422
