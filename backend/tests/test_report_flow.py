"""
Integrity report sub-flow: request, hand-off to writer, upload, release to client.
"""

from conftest import assignment_doc, submit, to_in_progress, writer_paysheets

REPORT = {"report": ("similarity.pdf", b"%PDF report", "application/pdf")}


class TestReportFlow:
    def test_full_round_trip(self, api, db):
        aid = to_in_progress(api)
        assert writer_paysheets(db)[0]["status"] == "Due"

        resp = api.as_("client-1").post(f"/api/assignments/{aid}/report/request")
        assert resp.status_code == 200
        doc = assignment_doc(db, aid)
        assert doc["report_status"] == "requested"
        assert doc["turnitin_requested"] is True

        assert api.as_("admin-1").put(f"/api/assignments/{aid}/report/send-to-writer").status_code == 200
        assert assignment_doc(db, aid)["report_status"] == "sent_to_writer"

        # Not released yet
        assert api.as_("client-1").get(f"/api/download/report/{aid}").status_code == 404

        resp = api.as_("writer-1").post(f"/api/assignments/{aid}/report/upload", files=REPORT)
        assert resp.status_code == 200
        assert assignment_doc(db, aid)["report_status"] == "writer_submitted"
        assert api.as_("client-1").get(f"/api/download/report/{aid}").status_code == 403

        assert api.as_("admin-1").put(f"/api/assignments/{aid}/report/send-to-client").status_code == 200
        assert assignment_doc(db, aid)["report_status"] == "sent_to_user"
        assert writer_paysheets(db)[0]["status"] == "Pending"

        resp = api.as_("client-1").get(f"/api/download/report/{aid}")
        assert resp.status_code == 200
        assert resp.content == b"%PDF report"

        client_notes = [d.to_dict() for d in db.collection("notifications").where("user_id", "==", "client-1").stream()]
        assert any(n["type"] == "report" for n in client_notes)

    def test_request_needs_a_writer(self, api, db):
        aid = submit(api)
        resp = api.as_("client-1").post(f"/api/assignments/{aid}/report/request")
        assert resp.status_code == 400
        assert assignment_doc(db, aid)["report_status"] is None

    def test_duplicate_request_is_rejected(self, api):
        aid = to_in_progress(api)
        api.as_("client-1").post(f"/api/assignments/{aid}/report/request")
        assert api.as_("client-1").post(f"/api/assignments/{aid}/report/request").status_code == 400

    def test_steps_cannot_be_skipped(self, api, db):
        aid = to_in_progress(api)
        api.as_("client-1").post(f"/api/assignments/{aid}/report/request")

        assert api.as_("writer-1").post(f"/api/assignments/{aid}/report/upload", files=REPORT).status_code == 400
        assert api.as_("admin-1").put(f"/api/assignments/{aid}/report/send-to-client").status_code == 400
        assert assignment_doc(db, aid)["report_status"] == "requested"

    def test_only_assigned_writer_uploads(self, api, db):
        aid = to_in_progress(api)
        api.as_("client-1").post(f"/api/assignments/{aid}/report/request")
        api.as_("admin-1").put(f"/api/assignments/{aid}/report/send-to-writer")

        resp = api.as_("writer-2").post(f"/api/assignments/{aid}/report/upload", files=REPORT)
        assert resp.status_code == 401
        assert assignment_doc(db, aid)["report_status"] == "sent_to_writer"
