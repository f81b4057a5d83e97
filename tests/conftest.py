"""Shared fixtures: an in-memory app, role-bearing users, and bearer headers.

Engine tests take ``people`` (which holds an app context open for the whole
test). HTTP tests take ``client`` and ``accounts`` and open their own short
app contexts when they need to look at the database, so each request loads
its caller fresh.
"""
from types import SimpleNamespace

import pytest

from app import create_app
from extensions import db
from models import User, UserRole
from utils.security import issue_access_token

PASSWORD = "Str0ng!Passw0rd"

BUILDING = {
    "name": "Lakeview Towers",
    "category": "residential",
    "address": "12 Marine Drive",
    "city": "Mumbai",
    "state": "Maharashtra",
    "pincode": "400002",
    "floors": 14,
    "area_sqft": 52000,
}

BUILDING_JSON = {
    "name": "Lakeview Towers",
    "category": "residential",
    "address": "12 Marine Drive",
    "city": "Mumbai",
    "state": "Maharashtra",
    "pincode": "400002",
    "floors": 14,
    "areaSqft": 52000,
}


def make_user(email, *roles, full_name="Test User"):
    user = User(full_name=full_name, email=email, is_active=True)
    user.set_password(PASSWORD)
    for role in roles:
        user.roles.append(UserRole(role=role))
    db.session.add(user)
    db.session.commit()
    return user


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def people(app):
    with app.app_context():
        yield SimpleNamespace(
            applicant=make_user("asha.rao@lakeview.in", full_name="Asha Rao"),
            officer=make_user("officer@firenoc.gov.in", "fire_officer", full_name="Vikram Singh"),
            senior=make_user("senior@firenoc.gov.in", "senior_officer", full_name="Meera Iyer"),
            admin=make_user("admin@firenoc.gov.in", "admin", full_name="Chief Fire Officer"),
        )


@pytest.fixture
def accounts(app):
    """User ids and bearer headers per role, created outside any long-lived context."""
    with app.app_context():
        users = {
            "applicant": make_user("asha.rao@lakeview.in", full_name="Asha Rao"),
            "other": make_user("ravi.k@harbourmall.in", full_name="Ravi Kumar"),
            "officer": make_user("officer@firenoc.gov.in", "fire_officer", full_name="Vikram Singh"),
            "senior": make_user("senior@firenoc.gov.in", "senior_officer", full_name="Meera Iyer"),
            "admin": make_user("admin@firenoc.gov.in", "admin", full_name="Chief Fire Officer"),
        }
        return SimpleNamespace(
            ids={name: user.id for name, user in users.items()},
            headers={name: bearer(issue_access_token(user)) for name, user in users.items()},
        )


@pytest.fixture
def api(client, accounts):
    """Small driver for the HTTP workflow."""

    class Api:
        def create(self, who="applicant", **extra):
            body = {"building": dict(BUILDING_JSON), "applicationType": "new", "purpose": "Occupancy"}
            body.update(extra)
            return client.post("/api/applications", json=body, headers=accounts.headers[who])

        def schedule(self, application_id, who="officer", date="2025-01-10", time="10:00 AM"):
            return client.post(
                "/api/workflow/schedule-inspection",
                json={"applicationId": application_id, "scheduledDate": date, "scheduledTime": time},
                headers=accounts.headers[who],
            )

        def complete(self, inspection_id, who="officer", score=82, **extra):
            body = {"inspectionId": inspection_id, "overallScore": score, "findings": "Extinguishers serviced"}
            body.update(extra)
            return client.post("/api/workflow/complete-inspection", json=body, headers=accounts.headers[who])

        def decide(self, application_id, decision, reason=None, who="admin"):
            return client.post(
                "/api/workflow/decision",
                json={"applicationId": application_id, "decision": decision, "rejectionReason": reason},
                headers=accounts.headers[who],
            )

        def inspected(self):
            application_id = self.create().get_json()["applicationId"]
            inspection_id = self.schedule(application_id).get_json()["inspectionId"]
            self.complete(inspection_id)
            return application_id

    return Api()
