"""End-to-end workflow through the HTTP surface."""
from extensions import db
from models import NOC, Application


class TestHappyPath:
    def test_create_schedule_complete_approve(self, app, client, api, accounts):
        created = api.create()
        assert created.status_code == 201
        body = created.get_json()
        assert body["status"] == "submitted"
        assert body["applicationNumber"].startswith("APP-")
        application_id = body["applicationId"]

        scheduled = api.schedule(application_id, date="2025-01-10", time="10:00 AM")
        assert scheduled.status_code == 200
        inspection_id = scheduled.get_json()["inspectionId"]

        completed = api.complete(inspection_id, score=82)
        assert completed.status_code == 200

        decided = api.decide(application_id, "approve")
        assert decided.status_code == 200
        noc_number = decided.get_json()["nocNumber"]
        assert noc_number.startswith("NOC-")

        with app.app_context():
            assert NOC.query.filter_by(application_id=application_id).count() == 1
            assert db.session.get(Application, application_id).status == "approved"

        notes = client.get("/api/notifications", headers=accounts.headers["applicant"]).get_json()["items"]
        approved = [n for n in notes if n["title"] == "NOC Approved"]
        assert len(approved) == 1
        assert noc_number in approved[0]["message"]

        verified = client.get(f"/api/verify/{noc_number.lower()}")
        assert verified.status_code == 200
        assert verified.get_json()["valid"] is True
        assert verified.get_json()["status"] == "active"

        by_query = client.get("/api/verify", query_string={"nocNumber": noc_number})
        assert by_query.get_json()["nocNumber"] == noc_number

        detail = client.get(f"/api/applications/{application_id}", headers=accounts.headers["applicant"]).get_json()
        assert detail["noc"]["nocNumber"] == noc_number
        assert detail["inspection"]["overallScore"] == 82
        assert [h["newStatus"] for h in detail["history"]] == [
            "submitted",
            "inspection_scheduled",
            "inspection_completed",
            "approved",
        ]

    def test_certificate_download(self, client, api, accounts):
        application_id = api.inspected()
        noc_number = api.decide(application_id, "approve").get_json()["nocNumber"]

        response = client.get(f"/api/nocs/{noc_number}/certificate", headers=accounts.headers["applicant"])
        assert response.status_code == 200
        assert response.mimetype == "application/pdf"
        assert response.data[:5] == b"%PDF-"

        other = client.get(f"/api/nocs/{noc_number}/certificate", headers=accounts.headers["other"])
        assert other.status_code == 403

        staff = client.get(f"/api/nocs/{noc_number}/certificate", headers=accounts.headers["officer"])
        assert staff.status_code == 200

    def test_revocation_shows_in_verification(self, client, api, accounts):
        application_id = api.inspected()
        noc_number = api.decide(application_id, "approve").get_json()["nocNumber"]

        revoked = client.post(
            f"/api/nocs/{noc_number}/revoke",
            json={"reason": "Unauthorised structural changes"},
            headers=accounts.headers["admin"],
        )
        assert revoked.status_code == 200

        body = client.get(f"/api/verify/{noc_number}").get_json()
        assert body["valid"] is False
        assert body["status"] == "revoked"


class TestRejectPath:
    def test_reject_with_reason(self, app, client, api, accounts):
        application_id = api.create().get_json()["applicationId"]
        inspection_id = api.schedule(application_id).get_json()["inspectionId"]
        api.complete(inspection_id, score=30)

        response = api.decide(application_id, "reject", "Insufficient fire exits")

        assert response.status_code == 200
        assert response.get_json()["nocNumber"] is None
        with app.app_context():
            application = db.session.get(Application, application_id)
            assert application.status == "rejected"
            assert application.rejection_reason == "Insufficient fire exits"
            assert NOC.query.count() == 0

        notes = client.get("/api/notifications", headers=accounts.headers["applicant"]).get_json()["items"]
        assert any("Reason: Insufficient fire exits" in n["message"] for n in notes)

    def test_blank_reason_is_bad_request(self, app, api):
        application_id = api.inspected()

        response = api.decide(application_id, "reject", "   ")

        assert response.status_code == 400
        with app.app_context():
            assert db.session.get(Application, application_id).status == "inspection_completed"


class TestErrorMapping:
    def test_unknown_noc_is_not_found(self, client):
        response = client.get("/api/verify/NOC-20000101-0001")
        assert response.status_code == 404
        assert response.get_json()["notFound"] is True

    def test_schedule_unknown_application(self, api):
        response = api.schedule("missing-application")
        assert response.status_code == 404

    def test_schedule_bad_slot(self, api):
        application_id = api.create().get_json()["applicationId"]
        assert api.schedule(application_id, time="11:30 PM").status_code == 400

    def test_complete_missing_inspection(self, api):
        assert api.complete("missing-inspection").status_code == 404

    def test_decide_wrong_state(self, api):
        application_id = api.create().get_json()["applicationId"]
        response = api.decide(application_id, "approve")
        assert response.status_code == 409
        assert "cannot move" in response.get_json()["error"]

    def test_unknown_route_is_json(self, client):
        response = client.get("/api/nothing-here")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Not Found"}

    def test_health(self, client):
        response = client.get("/health")
        assert response.get_json() == {"status": "ok"}
        assert response.headers["X-Content-Type-Options"] == "nosniff"


class TestApplicationsReadSide:
    def test_applicants_see_only_their_own(self, client, api, accounts):
        api.create()
        api.create(who="other")

        mine = client.get("/api/applications", headers=accounts.headers["applicant"]).get_json()
        everything = client.get("/api/applications", headers=accounts.headers["officer"]).get_json()

        assert mine["total"] == 1
        assert everything["total"] == 2

    def test_status_filter(self, client, api, accounts):
        api.create()
        api.create(submit=False)

        drafts = client.get(
            "/api/applications", query_string={"status": "draft"}, headers=accounts.headers["applicant"]
        ).get_json()
        assert drafts["total"] == 1
        assert drafts["items"][0]["applicationNumber"] is None

    def test_draft_submit_endpoint(self, client, api, accounts):
        application_id = api.create(submit=False).get_json()["applicationId"]

        response = client.post(f"/api/applications/{application_id}/submit", headers=accounts.headers["applicant"])

        assert response.status_code == 200
        assert response.get_json()["applicationNumber"].startswith("APP-")

    def test_other_applicant_cannot_read_detail(self, client, api, accounts):
        application_id = api.create().get_json()["applicationId"]
        response = client.get(f"/api/applications/{application_id}", headers=accounts.headers["other"])
        assert response.status_code == 403

    def test_invalid_building_is_bad_request(self, client, accounts):
        response = client.post(
            "/api/applications",
            json={"building": {"name": "Shed", "category": "residential"}},
            headers=accounts.headers["applicant"],
        )
        assert response.status_code == 400
        assert "address" in response.get_json()["error"]


class TestNotificationsEndpoints:
    def test_mark_read(self, client, api, accounts):
        application_id = api.create().get_json()["applicationId"]
        api.schedule(application_id)
        headers = accounts.headers["applicant"]

        unread = client.get("/api/notifications", query_string={"unread": "true"}, headers=headers).get_json()
        assert unread["unreadCount"] == 1
        note_id = unread["items"][0]["id"]

        assert client.post(f"/api/notifications/{note_id}/read", headers=headers).status_code == 200
        assert client.get("/api/notifications", headers=headers).get_json()["unreadCount"] == 0

    def test_cannot_mark_someone_elses(self, client, api, accounts):
        application_id = api.create().get_json()["applicationId"]
        api.schedule(application_id)
        note_id = client.get("/api/notifications", headers=accounts.headers["applicant"]).get_json()["items"][0]["id"]

        response = client.post(f"/api/notifications/{note_id}/read", headers=accounts.headers["other"])
        assert response.status_code == 404

    def test_mark_all_read(self, client, api, accounts):
        api.inspected()
        headers = accounts.headers["applicant"]

        response = client.post("/api/notifications/read-all", headers=headers)

        assert response.get_json()["updated"] == 2
        assert client.get("/api/notifications", headers=headers).get_json()["unreadCount"] == 0
