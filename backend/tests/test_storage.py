"""
Upload storage: path normalization, legacy path resolution and downloads.
"""

import pytest

from assignflow.core import storage

from conftest import assignment_doc, submit, to_completed, to_in_progress


class TestNormalizeStoredPath:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("uploads/brief.pdf", "uploads/brief.pdf"),
            ("/var/www/backend/uploads/brief.pdf", "uploads/brief.pdf"),
            ("C:\\projects\\site\\uploads\\brief.pdf", "uploads/brief.pdf"),
            ("/srv/uploads/old/uploads/nested/brief.pdf", "uploads/nested/brief.pdf"),
            ("brief.pdf", "uploads/brief.pdf"),
            ("/tmp/elsewhere/brief.pdf", "uploads/brief.pdf"),
        ],
    )
    def test_forms(self, raw, expected):
        assert storage.normalize_stored_path(raw) == expected


class TestResolveStoredPath:
    def test_finds_file_in_upload_dir_from_legacy_absolute_path(self, upload_dir):
        upload_dir.mkdir(parents=True)
        (upload_dir / "brief.pdf").write_bytes(b"x")

        resolved = storage.resolve_stored_path("/home/old-server/app/uploads/brief.pdf")
        assert resolved == upload_dir / "brief.pdf"

    def test_windows_path(self, upload_dir):
        upload_dir.mkdir(parents=True)
        (upload_dir / "proof.png").write_bytes(b"x")

        assert storage.resolve_stored_path("D:\\site\\uploads\\proof.png") == upload_dir / "proof.png"

    def test_missing_file(self, upload_dir):
        assert storage.resolve_stored_path("uploads/nothing-here.pdf") is None
        assert storage.resolve_stored_path("") is None


class TestUniqueName:
    def test_keeps_extension_lowercased(self):
        name = storage.unique_name("attachments", "Essay.DOCX")
        assert name.startswith("attachments-")
        assert name.endswith(".docx")

    def test_names_differ(self):
        assert storage.unique_name("f", "a.pdf") != storage.unique_name("f", "a.pdf")


class TestLimits:
    def test_file_size_limit(self, api, monkeypatch):
        monkeypatch.setattr(storage.settings, "MAX_UPLOAD_BYTES", 10)
        resp = api.as_("client-1").post(
            "/api/assignments/",
            data={"title": "Big"},
            files=[("files", ("big.pdf", b"x" * 11, "application/pdf"))],
        )
        assert resp.status_code == 400
        assert resp.json()["message"].startswith("File too large")

    def test_file_count_limit(self, api, monkeypatch):
        monkeypatch.setattr(storage.settings, "MAX_FILES_PER_UPLOAD", 2)
        files = [("files", (f"part{i}.pdf", b"x", "application/pdf")) for i in range(3)]
        resp = api.as_("client-1").post("/api/assignments/", data={"title": "Many"}, files=files)
        assert resp.status_code == 400


class TestDownloads:
    def test_owner_downloads_original(self, api):
        aid = submit(api)
        resp = api.as_("client-1").get(f"/api/download/original/{aid}/brief.pdf")
        assert resp.status_code == 200
        assert resp.content == b"%PDF-1.4 brief"

    def test_stranger_cannot_download(self, api):
        aid = submit(api)
        assert api.as_("client-2").get(f"/api/download/original/{aid}/brief.pdf").status_code == 403

    def test_unknown_filename(self, api):
        aid = submit(api)
        assert api.as_("client-1").get(f"/api/download/original/{aid}/other.pdf").status_code == 404

    def test_completed_work_waits_for_approval(self, api):
        aid = to_completed(api)

        assert api.as_("client-1").get(f"/api/download/completed/{aid}/final.docx").status_code == 403
        assert api.as_("writer-1").get(f"/api/download/completed/{aid}/final.docx").status_code == 200

        api.as_("admin-1").put(f"/api/assignments/{aid}/approve")
        resp = api.as_("client-1").get(f"/api/download/completed/{aid}/final.docx")
        assert resp.status_code == 200
        assert resp.content == b"final essay"

    def test_legacy_stored_path_still_downloads(self, api, db, upload_dir):
        aid = submit(api)
        doc = assignment_doc(db, aid)
        stored_name = doc["attachments"][0]["path"].split("/")[-1]
        doc["attachments"][0]["path"] = f"C:\\old-host\\backend\\uploads\\{stored_name}"
        db.collection("assignments").document(aid).set(doc)

        resp = api.as_("admin-1").get(f"/api/download/original/{aid}/brief.pdf")
        assert resp.status_code == 200

    def test_writer_cannot_see_payment_proof(self, api):
        aid = to_in_progress(api)
        assert api.as_("writer-1").get(f"/api/download/payment-proof/{aid}").status_code == 404
        assert api.as_("admin-1").get(f"/api/download/payment-proof/{aid}").status_code == 200
