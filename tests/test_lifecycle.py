"""Tests for application status transitions and their side records."""
from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from conftest import BUILDING
from extensions import db
from models import NOC, Application, ApplicationStatusHistory, AuditLog, Inspection, Notification
from utils import lifecycle
from utils.errors import Conflict, DependencyFailure, Forbidden, InvalidInput, NotFound


def _submitted(people, **kwargs):
    return lifecycle.create_application(people.applicant, dict(BUILDING), purpose="Occupancy", **kwargs)


def _scheduled(people):
    application = _submitted(people)
    inspection = lifecycle.schedule_inspection(people.officer, application.id, "2025-01-10", "10:00 AM")
    return application, inspection


def _inspected(people, score=82):
    application, inspection = _scheduled(people)
    lifecycle.complete_inspection(people.officer, inspection_id=inspection.id, overall_score=score)
    return application


class TestTransitionTable:
    def test_allowed_edges(self):
        assert lifecycle.can_transition("draft", "submitted")
        assert lifecycle.can_transition("under_review", "inspection_scheduled")
        assert lifecycle.can_transition("inspection_scheduled", "inspection_scheduled")
        assert lifecycle.can_transition("inspection_completed", "rejected")

    def test_terminal_states_have_no_exits(self):
        for target in ("submitted", "inspection_scheduled", "approved", "rejected"):
            assert not lifecycle.can_transition("approved", target)
            assert not lifecycle.can_transition("rejected", target)

    def test_requires_compliance_is_unreachable(self):
        assert all("requires_compliance" not in targets for targets in lifecycle.TRANSITIONS.values())

    def test_add_years_handles_leap_day(self):
        assert lifecycle.add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)
        assert lifecycle.add_years(date(2025, 1, 10), 1) == date(2026, 1, 10)


class TestCreateAndSubmit:
    def test_create_submits_and_numbers_by_default(self, people):
        application = _submitted(people)

        assert application.status == "submitted"
        assert application.application_number.startswith("APP-")
        assert application.submitted_at is not None
        assert application.building.owner_id == people.applicant.id
        assert [h.new_status for h in application.status_history] == ["submitted"]

    def test_draft_has_no_number_until_submitted(self, people):
        application = _submitted(people, submit=False)
        assert application.status == "draft"
        assert application.application_number is None

        lifecycle.submit_application(people.applicant, application.id)
        assert application.status == "submitted"
        assert application.application_number.startswith("APP-")

    def test_only_the_owner_can_submit(self, people):
        application = _submitted(people, submit=False)
        with pytest.raises(Forbidden):
            lifecycle.submit_application(people.officer, application.id)

    def test_submitting_twice_conflicts(self, people):
        application = _submitted(people)
        with pytest.raises(Conflict):
            lifecycle.submit_application(people.applicant, application.id)

    def test_unknown_category_is_rejected(self, people):
        building = dict(BUILDING, category="spaceport")
        with pytest.raises(InvalidInput):
            lifecycle.create_application(people.applicant, building)
        assert Application.query.count() == 0


class TestScheduleInspection:
    def test_schedule_creates_inspection(self, people):
        application, inspection = _scheduled(people)

        assert application.status == "inspection_scheduled"
        assert inspection.scheduled_date == date(2025, 1, 10)
        assert inspection.scheduled_time == "10:00 AM"
        assert inspection.officer_id == people.officer.id
        assert inspection.status == "scheduled"

    def test_rescheduling_updates_the_single_inspection(self, people):
        application, first = _scheduled(people)

        second = lifecycle.schedule_inspection(people.senior, application.id, "2025-01-12", "02:00 PM")

        rows = Inspection.query.filter_by(application_id=application.id).all()
        assert len(rows) == 1
        assert second.id == first.id
        assert rows[0].scheduled_date == date(2025, 1, 12)
        assert rows[0].scheduled_time == "02:00 PM"
        assert rows[0].officer_id == people.senior.id
        assert application.status == "inspection_scheduled"

    @pytest.mark.parametrize(
        "scheduled_date, scheduled_time",
        [
            (None, "10:00 AM"),
            ("10-01-2025", "10:00 AM"),
            ("2025-01-10", ""),
            ("2025-01-10", "07:30 PM"),
        ],
    )
    def test_bad_date_or_slot_is_invalid(self, people, scheduled_date, scheduled_time):
        application = _submitted(people)
        with pytest.raises(InvalidInput):
            lifecycle.schedule_inspection(people.officer, application.id, scheduled_date, scheduled_time)
        assert application.status == "submitted"
        assert Inspection.query.count() == 0

    def test_missing_application(self, people):
        with pytest.raises(NotFound):
            lifecycle.schedule_inspection(people.officer, "does-not-exist", "2025-01-10", "10:00 AM")

    def test_schedule_from_under_review(self, people):
        application = _submitted(people)
        application.status = "under_review"
        db.session.commit()

        inspection = lifecycle.schedule_inspection(people.officer, application.id, "2025-01-10", "11:00 AM")

        assert application.status == "inspection_scheduled"
        assert inspection.application_id == application.id
        entry = ApplicationStatusHistory.query.filter_by(
            application_id=application.id, new_status="inspection_scheduled"
        ).one()
        assert entry.previous_status == "under_review"

    def test_draft_cannot_be_scheduled(self, people):
        application = _submitted(people, submit=False)
        with pytest.raises(Conflict):
            lifecycle.schedule_inspection(people.officer, application.id, "2025-01-10", "10:00 AM")

    def test_notification_failure_does_not_undo_schedule(self, people):
        application = _submitted(people)
        with patch("utils.notifications.Notification", side_effect=SQLAlchemyError("insert failed")):
            lifecycle.schedule_inspection(people.officer, application.id, "2025-01-10", "10:00 AM")

        db.session.expire_all()
        assert db.session.get(Application, application.id).status == "inspection_scheduled"
        assert Notification.query.count() == 0


class TestCompleteInspection:
    def test_complete_records_results(self, people):
        application, inspection = _scheduled(people)

        lifecycle.complete_inspection(
            people.officer,
            inspection_id=inspection.id,
            findings="Two extinguishers expired",
            recommendations="Replace within 30 days",
            overall_score=82,
            photo_urls=["https://cdn.example.org/a.jpg"],
        )

        assert inspection.status == "completed"
        assert inspection.overall_score == 82
        assert inspection.photos == ["https://cdn.example.org/a.jpg"]
        assert inspection.arrival_time is not None
        assert inspection.departure_time is not None
        assert application.status == "inspection_completed"

    def test_zero_score_is_kept(self, people):
        _, inspection = _scheduled(people)
        lifecycle.complete_inspection(people.officer, inspection_id=inspection.id, overall_score=0)
        assert inspection.overall_score == 0

    def test_resolves_inspection_from_application(self, people):
        application, inspection = _scheduled(people)
        lifecycle.complete_inspection(people.officer, application_id=application.id, overall_score=70)
        assert inspection.status == "completed"

    def test_missing_inspection_has_no_side_effects(self, people):
        application = _submitted(people)
        audit_before = AuditLog.query.count()
        notifications_before = Notification.query.count()

        with pytest.raises(NotFound):
            lifecycle.complete_inspection(people.officer, application_id=application.id, overall_score=50)

        db.session.expire_all()
        assert Inspection.query.count() == 0
        assert db.session.get(Application, application.id).status == "submitted"
        assert AuditLog.query.count() == audit_before
        assert Notification.query.count() == notifications_before

    @pytest.mark.parametrize("score", [-1, 101, "high", True, 72.5])
    def test_out_of_range_score_is_invalid(self, people, score):
        _, inspection = _scheduled(people)
        with pytest.raises(InvalidInput):
            lifecycle.complete_inspection(people.officer, inspection_id=inspection.id, overall_score=score)
        assert inspection.status == "scheduled"

    def test_completing_twice_conflicts(self, people):
        _, inspection = _scheduled(people)
        lifecycle.complete_inspection(people.officer, inspection_id=inspection.id)
        with pytest.raises(Conflict):
            lifecycle.complete_inspection(people.officer, inspection_id=inspection.id)

    def test_completion_notifies_with_pending_score(self, people):
        application, inspection = _scheduled(people)
        lifecycle.complete_inspection(people.officer, inspection_id=inspection.id)

        note = Notification.query.filter_by(user_id=people.applicant.id, title="Inspection Completed").one()
        assert "Score: Pending" in note.message
        assert note.action_url == f"/applications/{application.id}"


class TestDecide:
    def test_approve_issues_exactly_one_noc(self, people):
        application = _inspected(people)

        approved, noc = lifecycle.decide(people.admin, application.id, "approve")

        assert approved.status == "approved"
        assert approved.rejection_reason is None
        assert NOC.query.filter_by(application_id=application.id).count() == 1
        assert noc.noc_number.startswith("NOC-")
        assert noc.issued_by == people.admin.id
        assert noc.issued_to == "Asha Rao"
        assert noc.status == "active"
        assert noc.conditions == []
        assert noc.valid_from == noc.issue_date
        assert noc.valid_until == lifecycle.add_years(noc.valid_from, 1)
        assert len(noc.verification_hash) == 64

    def test_reject_stores_reason_verbatim(self, people):
        application = _inspected(people, score=30)

        rejected, noc = lifecycle.decide(people.admin, application.id, "reject", "Insufficient fire exits")

        assert noc is None
        assert rejected.status == "rejected"
        assert rejected.rejection_reason == "Insufficient fire exits"
        assert NOC.query.count() == 0

    def test_reject_with_expired_actor(self, people):
        application = _inspected(people, score=30)
        db.session.expire(people.admin)

        rejected, _ = lifecycle.decide(people.admin, application.id, "reject", "Exit doors chained shut")

        db.session.expire_all()
        stored = db.session.get(Application, rejected.id)
        assert stored.status == "rejected"
        assert stored.rejection_reason == "Exit doors chained shut"
        entry = ApplicationStatusHistory.query.filter_by(application_id=stored.id, new_status="rejected").one()
        assert entry.changed_by == people.admin.id

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_blank_rejection_reason_is_invalid(self, people, reason):
        application = _inspected(people)
        with pytest.raises(InvalidInput):
            lifecycle.decide(people.admin, application.id, "reject", reason)
        db.session.expire_all()
        assert db.session.get(Application, application.id).status == "inspection_completed"

    def test_unknown_decision_is_invalid(self, people):
        application = _inspected(people)
        with pytest.raises(InvalidInput):
            lifecycle.decide(people.admin, application.id, "defer")

    def test_decision_before_inspection_conflicts(self, people):
        application, _ = _scheduled(people)
        with pytest.raises(Conflict):
            lifecycle.decide(people.admin, application.id, "approve")

    def test_second_decision_conflicts(self, people):
        application = _inspected(people)
        lifecycle.decide(people.admin, application.id, "approve")
        with pytest.raises(Conflict):
            lifecycle.decide(people.admin, application.id, "reject", "Changed our mind")

    def test_certificate_failure_rolls_back_approval(self, people):
        application = _inspected(people)
        application_id = application.id

        with patch("utils.lifecycle.next_number", side_effect=SQLAlchemyError("sequence unavailable")):
            with pytest.raises(DependencyFailure):
                lifecycle.decide(people.admin, application_id, "approve")

        db.session.expire_all()
        assert db.session.get(Application, application_id).status == "inspection_completed"
        assert NOC.query.count() == 0

    def test_approval_notifies_with_noc_number(self, people):
        application = _inspected(people)
        _, noc = lifecycle.decide(people.admin, application.id, "approve")

        note = Notification.query.filter_by(user_id=people.applicant.id, title="NOC Approved").one()
        assert noc.noc_number in note.message
        assert note.type == "success"


class TestRevoke:
    def test_revoke_marks_certificate(self, people):
        application = _inspected(people)
        _, noc = lifecycle.decide(people.admin, application.id, "approve")

        lifecycle.revoke_noc(people.admin, noc.noc_number.lower(), "Unauthorised structural changes")

        assert noc.status == "revoked"
        assert noc.revoked_at is not None
        assert noc.revocation_reason == "Unauthorised structural changes"
        assert Notification.query.filter_by(title="NOC Revoked").count() == 1

    def test_revoke_requires_reason(self, people):
        application = _inspected(people)
        _, noc = lifecycle.decide(people.admin, application.id, "approve")
        with pytest.raises(InvalidInput):
            lifecycle.revoke_noc(people.admin, noc.noc_number, " ")

    def test_revoking_twice_conflicts(self, people):
        application = _inspected(people)
        _, noc = lifecycle.decide(people.admin, application.id, "approve")
        lifecycle.revoke_noc(people.admin, noc.noc_number, "Fire exits blocked")
        with pytest.raises(Conflict):
            lifecycle.revoke_noc(people.admin, noc.noc_number, "Again")
