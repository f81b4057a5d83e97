"""Tests for public certificate verification."""
from datetime import date, timedelta

import pytest

from conftest import BUILDING
from extensions import db
from utils import lifecycle
from utils.errors import InvalidInput, NotFound
from utils.verification import certificate_status, verify_noc


@pytest.fixture
def issued(people):
    application = lifecycle.create_application(people.applicant, dict(BUILDING))
    inspection = lifecycle.schedule_inspection(people.officer, application.id, "2025-01-10", "10:00 AM")
    lifecycle.complete_inspection(people.officer, inspection_id=inspection.id, overall_score=82)
    _, noc = lifecycle.decide(people.admin, application.id, "approve")
    return noc


class TestVerifyNoc:
    def test_active_certificate_is_valid(self, issued):
        result = verify_noc(issued.noc_number)

        assert result["valid"] is True
        assert result["status"] == "active"
        assert result["issuedTo"] == "Asha Rao"
        assert result["building"]["name"] == "Lakeview Towers"
        assert result["verificationHash"] == issued.verification_hash

    def test_lookup_is_trimmed_and_case_insensitive(self, issued):
        result = verify_noc(f"  {issued.noc_number.lower()} ")
        assert result["nocNumber"] == issued.noc_number

    def test_expired_certificate(self, issued):
        issued.valid_until = date.today() - timedelta(days=1)
        db.session.commit()

        result = verify_noc(issued.noc_number)

        assert result["valid"] is False
        assert result["status"] == "expired"

    def test_validity_ends_on_valid_until(self, issued):
        assert certificate_status(issued, today=issued.valid_until - timedelta(days=1)) == "active"
        assert certificate_status(issued, today=issued.valid_until) == "expired"

    def test_revoked_certificate(self, issued, people):
        lifecycle.revoke_noc(people.admin, issued.noc_number, "Fire exits blocked")

        result = verify_noc(issued.noc_number)

        assert result["valid"] is False
        assert result["status"] == "revoked"

    def test_unknown_number_is_not_found(self, issued):
        with pytest.raises(NotFound):
            verify_noc("NOC-19990101-0001")

    def test_blank_number_is_invalid(self, people):
        with pytest.raises(InvalidInput):
            verify_noc("   ")

    def test_conditions_are_included(self, issued):
        issued.conditions = ["Keep exits clear", "Quarterly extinguisher service"]
        db.session.commit()

        result = verify_noc(issued.noc_number)

        assert result["conditions"] == ["Keep exits clear", "Quarterly extinguisher service"]
