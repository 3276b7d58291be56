"""
Role projection: clients never see the writer's price and writers never see the client's.
"""

from assignflow.models.assignment_model import Assignment, StoredFile
from assignflow.services import presenter

from conftest import to_in_progress


def priced_assignment() -> Assignment:
    return Assignment(
        _id="a1",
        title="Lab report",
        student_id="client-1",
        writer_id="writer-1",
        client_price=100.0,
        writer_price=60.0,
        status="In Progress",
        paysheet_id="p1",
        attachments=[StoredFile(name="brief.pdf", path="uploads/attachments-1-2.pdf")],
    )


class TestFormatAssignment:
    def test_client_view_hides_writer_price(self):
        view = presenter.format_assignment(priced_assignment(), "client")
        assert view["client_price"] == 100.0
        assert view["price"] == 100.0
        assert "writer_price" not in view
        assert "paysheet_id" not in view

    def test_writer_view_hides_client_price(self):
        view = presenter.format_assignment(priced_assignment(), "writer")
        assert view["writer_price"] == 60.0
        assert view["price"] == 60.0
        assert "client_price" not in view

    def test_admin_sees_both_prices(self):
        view = presenter.format_assignment(priced_assignment(), "admin")
        assert view["client_price"] == 100.0
        assert view["writer_price"] == 60.0
        assert view["paysheet_id"] == "p1"
        assert "price" not in view

    def test_file_urls_point_at_download_routes(self):
        view = presenter.format_assignment(priced_assignment(), "client")
        assert view["attachments"] == [{"name": "brief.pdf", "url": "/api/download/original/a1/brief.pdf"}]
        assert view["report_file"] is None

    def test_people_are_embedded(self, users):
        view = presenter.format_assignment(priced_assignment(), "admin", users)
        assert view["student"]["name"] == "Cleo Client"
        assert view["writer"]["name"] == "Wes Writer"


class TestPartialFallback:
    def test_formatting_error_degrades_to_partial(self, monkeypatch):
        def broken(*args, **kwargs):
            raise ValueError("bad field")

        monkeypatch.setattr(presenter, "format_assignment", broken)
        body = presenter.present_or_partial(priced_assignment(), "client", "Price accepted")

        assert body == {
            "id": "a1",
            "title": "Lab report",
            "status": "In Progress",
            "message": "Price accepted Some data may be limited due to formatting error.",
        }

    def test_success_wraps_message_and_assignment(self):
        body = presenter.present_or_partial(priced_assignment(), "writer", "Work uploaded successfully")
        assert body["message"] == "Work uploaded successfully"
        assert body["assignment"]["id"] == "a1"


class TestProjectionOverHttp:
    def test_each_role_gets_its_own_price(self, api, events):
        aid = to_in_progress(api, price=100, writer_price=60)

        client_view = api.as_("client-1").get(f"/api/assignments/{aid}").json()
        writer_view = api.as_("writer-1").get(f"/api/assignments/{aid}").json()
        admin_view = api.as_("admin-1").get(f"/api/assignments/{aid}").json()

        assert client_view["price"] == 100 and "writer_price" not in client_view
        assert writer_view["price"] == 60 and "client_price" not in writer_view
        assert admin_view["client_price"] == 100 and admin_view["writer_price"] == 60

    def test_pushed_updates_are_projected_per_recipient(self, api, events):
        to_in_progress(api, price=100, writer_price=60)

        pushed = [(uid, payload) for uid, name, payload in events.events if name == "assignmentUpdated"]
        for uid, payload in pushed:
            if uid == "client-1":
                assert "writer_price" not in payload
            elif uid == "writer-1":
                assert "client_price" not in payload
        assert any(uid == "writer-1" for uid, _ in pushed)
