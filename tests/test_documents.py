"""Tests for document validation and the upload/view endpoints with a fake blob store."""

from __future__ import annotations

import inspect
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from juno.api.documents import get_document_store, upload_document
from juno.errors import DocumentRejectedError
from juno.main import app
from juno.models import OrganizationDocument
from juno.storage.documents import build_object_key, remove_quietly, validate_upload


@pytest.fixture
def store():
    fake = MagicMock()
    fake.presigned_url.return_value = "https://files.example.com/signed"
    app.dependency_overrides[get_document_store] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_document_store, None)


def _upload(client, headers, name="license.pdf", content=b"%PDF-1.4 data", mime="application/pdf"):
    return client.post(
        "/api/documents/upload",
        headers=headers,
        files={"file": (name, content, mime)},
        data={"document_type": "business_registration"},
    )


class TestValidateUpload:
    def test_accepts_allowed_types(self) -> None:
        for mime in ("application/pdf", "image/png", "image/jpeg", "image/jpg"):
            validate_upload("scan", mime, 10)

    def test_rejects_other_types(self) -> None:
        with pytest.raises(DocumentRejectedError, match="Invalid file type"):
            validate_upload("run.exe", "application/x-msdownload", 10)

    def test_rejects_empty_and_oversized(self, monkeypatch) -> None:
        from juno.config import settings

        monkeypatch.setattr(settings, "document_max_bytes", 1024 * 1024)
        with pytest.raises(DocumentRejectedError, match="empty"):
            validate_upload("a.pdf", "application/pdf", 0)
        with pytest.raises(DocumentRejectedError, match="Maximum size is 1MB"):
            validate_upload("a.pdf", "application/pdf", 1024 * 1024 + 1)

    def test_object_key_layout(self) -> None:
        key = build_object_key(7, "Articles.PDF", "application/pdf")
        assert key.startswith("organizations/7/documents/")
        assert key.endswith(".pdf")
        assert build_object_key(7, "noext", "image/png").endswith(".png")

    def test_remove_quietly_swallows_storage_errors(self) -> None:
        fake = MagicMock()
        fake.delete.side_effect = ClientError({"Error": {"Code": "500"}}, "DeleteObject")
        remove_quietly(fake, "organizations/1/documents/x.pdf")
        fake.delete.assert_called_once()


class TestUploadEndpoint:
    def test_runs_in_worker_thread(self) -> None:
        # Storage and database calls block; FastAPI only offloads sync handlers
        assert not inspect.iscoroutinefunction(upload_document)

    def test_storage_unconfigured(self, client, make_tenant, make_user, auth) -> None:
        assert _upload(client, auth(make_user(make_tenant()))).status_code == 503

    def test_bad_type_never_reaches_storage(self, client, db, make_tenant, make_user, auth, store) -> None:
        r = _upload(client, auth(make_user(make_tenant())), name="virus.exe", mime="application/octet-stream")
        assert r.status_code == 400
        store.upload.assert_not_called()
        assert db.query(OrganizationDocument).count() == 0

    def test_oversized_rejected(self, client, make_tenant, make_user, auth, store, monkeypatch) -> None:
        from juno.config import settings

        monkeypatch.setattr(settings, "document_max_bytes", 16)
        r = _upload(client, auth(make_user(make_tenant())), content=b"x" * 17)
        assert r.status_code == 400
        store.upload.assert_not_called()

    def test_stored_and_recorded_pending(self, client, db, make_tenant, make_user, auth, store) -> None:
        tenant = make_tenant()
        r = _upload(client, auth(make_user(tenant)))
        assert r.status_code == 201
        assert r.json()["status"] == "pending"
        key = store.upload.call_args.args[0]
        assert key.startswith(f"organizations/{tenant.id}/documents/")
        document = db.query(OrganizationDocument).one()
        assert document.file_path == key
        assert document.file_size == len(b"%PDF-1.4 data")

    def test_storage_failure(self, client, db, make_tenant, make_user, auth, store) -> None:
        store.upload.side_effect = RuntimeError("bucket gone")
        r = _upload(client, auth(make_user(make_tenant())))
        assert r.status_code == 500
        assert db.query(OrganizationDocument).count() == 0

    def test_agent_cannot_upload(self, client, make_tenant, make_user, auth, store) -> None:
        assert _upload(client, auth(make_user(make_tenant(), role="agent"))).status_code == 403


class TestViewEndpoint:
    def _document(self, db, tenant) -> OrganizationDocument:
        doc = OrganizationDocument(
            tenant_id=tenant.id, document_type="tax_certificate", file_name="tax.pdf",
            file_path=f"organizations/{tenant.id}/documents/1-a.pdf", file_size=10, mime_type="application/pdf",
        )
        db.add(doc)
        db.commit()
        return doc

    def test_member_gets_signed_url(self, client, db, make_tenant, make_user, auth, store) -> None:
        tenant = make_tenant()
        doc = self._document(db, tenant)
        r = client.get(f"/api/documents/{doc.id}/view", headers=auth(make_user(tenant, role="agent")))
        assert r.json()["url"] == "https://files.example.com/signed"
        store.presigned_url.assert_called_once_with(doc.file_path)

    def test_other_tenant_gets_404(self, client, db, make_tenant, make_user, auth, store) -> None:
        doc = self._document(db, make_tenant("Owner Co"))
        r = client.get(f"/api/documents/{doc.id}/view", headers=auth(make_user(make_tenant())))
        assert r.status_code == 404
        store.presigned_url.assert_not_called()

    def test_super_admin_can_view_any(self, client, db, make_tenant, make_user, auth, store) -> None:
        doc = self._document(db, make_tenant("Owner Co"))
        r = client.get(f"/api/documents/{doc.id}/view", headers=auth(make_user(None, role="super_admin")))
        assert r.status_code == 200
