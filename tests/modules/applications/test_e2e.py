"""
End-to-end tests through the HTTP API.

The record store is an in-memory SQLite database and the blob store is an
in-memory double; everything else (routing, auth dependencies, service,
repository, purge) is the real code.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import update

from recruitment_api.core import auth
from recruitment_api.core.config import settings
from recruitment_api.core.database import get_db
from recruitment_api.core.rate_limit import get_memory_limiter
from recruitment_api.core.storage import get_storage
from recruitment_api.main import app
from recruitment_api.modules.applications import internal_router, repository
from recruitment_api.modules.applications.models import Application, ApplicationStatus

CRON_TOKEN = "cron-secret"
PDF_BYTES = b"%PDF-1.4\n% test document\n"


@pytest_asyncio.fixture
async def client(session_factory, blob_store, monkeypatch):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: blob_store
    monkeypatch.setattr(internal_router, "async_session_maker", session_factory)
    monkeypatch.setattr(settings, "cleanup_token", CRON_TOKEN)
    monkeypatch.setattr(auth, "_DEVELOPMENT_MODE", True)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def reviewer_headers():
    return {"Authorization": f"Bearer {uuid4()}"}


def form_data(submission):
    return {key: value for key, value in submission.items() if value is not None}


async def submit(client, submission, content=PDF_BYTES, content_type="application/pdf"):
    return await client.post(
        "/api/applications",
        data=form_data(submission),
        files={"attachment": ("cv.pdf", content, content_type)},
    )


async def cleanup(client):
    return await client.post("/internal/cleanup", headers={"X-CRON-TOKEN": CRON_TOKEN})


class TestApplicationLifecycle:
    """Submit, reject duplicate, review, purge."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(
        self, client, session_factory, blob_store, sample_submission, reviewer_headers
    ):
        # Submit
        response = await submit(client, sample_submission)
        assert response.status_code == 201
        body = response.json()
        assert body["ok"] is True
        application_id = body["id"]
        assert len(blob_store.objects) == 1

        # Same person, same role, same day
        duplicate = await submit(client, sample_submission)
        assert duplicate.status_code == 409
        duplicate_body = duplicate.json()
        assert duplicate_body["ok"] is False
        assert duplicate_body["reason"] == "duplicate"
        submitted_at = datetime.fromisoformat(duplicate_body["submitted_at"])
        reapply_after = datetime.fromisoformat(duplicate_body["reapply_after"])
        assert reapply_after - submitted_at == timedelta(days=settings.retention_days)
        assert len(blob_store.objects) == 1

        # Review
        response = await client.put(
            f"/api/admin/applications/{application_id}/status",
            json={"status": "InterviewPassed", "note": "Good fit"},
            headers=reviewer_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"]["status"] == "InterviewPassed"

        history = await client.get(
            f"/api/admin/applications/{application_id}/status", headers=reviewer_headers
        )
        assert history.status_code == 200
        entries = history.json()["history"]
        assert len(entries) == 1
        assert entries[0]["note"] == "Good fit"

        detail = await client.get(
            f"/api/admin/applications/{application_id}", headers=reviewer_headers
        )
        assert detail.json()["current_status"] == "InterviewPassed"

        # Nothing has expired yet
        response = await cleanup(client)
        assert response.status_code == 200
        assert response.json()["removed"] == 0

        # Backdate past the retention window
        async with session_factory() as db:
            await db.execute(
                update(Application).values(
                    submitted_at=datetime.now(UTC) - timedelta(days=settings.retention_days + 1)
                )
            )
            await db.commit()

        response = await cleanup(client)
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["removed"] == 1
        assert blob_store.objects == {}

        detail = await client.get(
            f"/api/admin/applications/{application_id}", headers=reviewer_headers
        )
        assert detail.status_code == 404

        # The person may apply again
        response = await submit(client, sample_submission)
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_other_role_is_not_a_duplicate(self, client, sample_submission):
        assert (await submit(client, sample_submission)).status_code == 201

        sample_submission["target_role"] = "Forklift Operator"
        assert (await submit(client, sample_submission)).status_code == 201

    @pytest.mark.asyncio
    async def test_expired_unpurged_record_still_blocks_insert(
        self, client, session_factory, blob_store, sample_submission
    ):
        """The unique constraint catches what the windowed pre-check lets through."""
        async with session_factory() as db:
            await repository.create(
                db,
                name="Maria da Silva",
                national_id="529.982.247-25",
                phone="11987654321",
                email="maria@example.com",
                postal_code="01310100",
                city="São Paulo",
                neighborhood="Bela Vista",
                street="Av. Paulista, 1000",
                commute_mode="Bus",
                target_role="Warehouse Assistant",
                national_id_normalized="52998224725",
                role_normalized="warehouse assistant",
                submitted_at=datetime.now(UTC) - timedelta(days=settings.retention_days + 30),
                attachment_path="warehouse-assistant/old.pdf",
                current_status=ApplicationStatus.NEW,
            )

        response = await submit(client, sample_submission)

        assert response.status_code == 409
        body = response.json()
        assert body["reason"] == "duplicate"
        assert "submitted_at" not in body
        assert "reapply_after" not in body
        assert blob_store.objects == {}


class TestSubmissionRejections:
    """Requests that are refused before anything is stored."""

    @pytest.mark.asyncio
    async def test_missing_fields(self, client, blob_store, sample_submission):
        sample_submission["phone"] = None
        sample_submission["email"] = "   "

        response = await submit(client, sample_submission)

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "error": "VALIDATION_ERROR",
            "message": "Missing required fields: phone, email",
        }
        assert blob_store.objects == {}

    @pytest.mark.asyncio
    async def test_missing_attachment(self, client, sample_submission):
        response = await client.post("/api/applications", data=form_data(sample_submission))

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "An attached file is required."

    @pytest.mark.asyncio
    async def test_wrong_file_type(self, client, sample_submission):
        response = await submit(client, sample_submission, b"\x89PNG", "image/png")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_throttled(self, client, sample_submission, monkeypatch):
        monkeypatch.setattr(get_memory_limiter(), "limit", 1)
        sample_submission["phone"] = None

        first = await submit(client, sample_submission)
        second = await submit(client, sample_submission)

        assert first.status_code == 400
        assert second.status_code == 429
        assert second.headers["Retry-After"] == str(settings.rate_limit_window_seconds)


class TestAdminEndpoints:
    """Reviewer endpoints."""

    @pytest.mark.asyncio
    async def test_requires_authentication(self, client):
        response = await client.get("/api/admin/applications")

        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "AUTHENTICATION_REQUIRED"

    @pytest.mark.asyncio
    async def test_unknown_status(self, client, sample_submission, reviewer_headers):
        application_id = (await submit(client, sample_submission)).json()["id"]

        response = await client.put(
            f"/api/admin/applications/{application_id}/status",
            json={"status": "Promoted"},
            headers=reviewer_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "INVALID_STATUS"

        history = await client.get(
            f"/api/admin/applications/{application_id}/status", headers=reviewer_headers
        )
        assert history.json()["history"] == []

    @pytest.mark.asyncio
    async def test_status_of_unknown_application(self, client, reviewer_headers):
        response = await client.put(
            f"/api/admin/applications/{uuid4()}/status",
            json={"status": "Hired"},
            headers=reviewer_headers,
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client, sample_submission, reviewer_headers):
        first_id = (await submit(client, sample_submission)).json()["id"]
        sample_submission["target_role"] = "Driver"
        await submit(client, sample_submission)

        await client.put(
            f"/api/admin/applications/{first_id}/status",
            json={"status": "Selected"},
            headers=reviewer_headers,
        )

        response = await client.get(
            "/api/admin/applications", params={"status": "Selected"}, headers=reviewer_headers
        )

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 1
        assert body["applications"][0]["id"] == first_id

    @pytest.mark.asyncio
    async def test_delete_application(
        self, client, blob_store, sample_submission, reviewer_headers
    ):
        application_id = (await submit(client, sample_submission)).json()["id"]

        response = await client.delete(
            f"/api/admin/applications/{application_id}", headers=reviewer_headers
        )

        assert response.status_code == 200
        assert blob_store.objects == {}

    @pytest.mark.asyncio
    async def test_vacancies(self, client, reviewer_headers):
        created = await client.post(
            "/api/admin/vacancies", json={"name": "Driver"}, headers=reviewer_headers
        )
        assert created.status_code == 201

        await client.post(
            "/api/admin/vacancies",
            json={"name": "Archivist", "active": False},
            headers=reviewer_headers,
        )
        duplicate = await client.post(
            "/api/admin/vacancies", json={"name": "Driver"}, headers=reviewer_headers
        )
        assert duplicate.status_code == 409

        public = await client.get("/api/vacancies")
        assert [v["name"] for v in public.json()] == ["Driver"]


class TestCleanupEndpoint:
    """Token guard of the internal cleanup route."""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.post("/internal/cleanup")

        assert response.status_code == 401
        assert response.json() == {"detail": {"ok": False, "message": "unauthorized"}}

    @pytest.mark.asyncio
    async def test_wrong_token(self, client):
        response = await client.post("/internal/cleanup", headers={"X-CRON-TOKEN": "nope"})

        assert response.status_code == 401


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.headers["X-Content-Type-Options"] == "nosniff"
