"""
Unit tests for the admin service functions.

These tests cover:
- Paginated application listing
- Application detail and deletion
- Vacancy management
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from recruitment_api.core.storage import StorageError
from recruitment_api.modules.applications.models import ApplicationStatus, Vacancy
from recruitment_api.modules.applications.service import (
    ApplicationNotFoundError,
    DuplicateVacancyError,
    PersistenceFailureError,
    VacancyNotFoundError,
    admin_create_vacancy,
    admin_delete_application,
    admin_delete_vacancy,
    admin_get_application_detail,
    admin_get_applications_list,
    admin_update_vacancy,
)

SERVICE = "recruitment_api.modules.applications.service"


class TestAdminGetApplicationsList:
    """Tests for admin_get_applications_list function."""

    @pytest.mark.asyncio
    async def test_pagination(self, mock_db, sample_application_model):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_applications_for_admin = AsyncMock(
                return_value=([sample_application_model], 45)
            )

            result = await admin_get_applications_list(
                mock_db, status=ApplicationStatus.NEW, page=3, limit=20
            )

        assert result["total"] == 45
        assert result["page"] == 3
        assert result["total_pages"] == 3
        kwargs = mock_repo.get_applications_for_admin.await_args.kwargs
        assert kwargs["skip"] == 40
        assert kwargs["limit"] == 20
        assert kwargs["status"] == ApplicationStatus.NEW

    @pytest.mark.asyncio
    async def test_limit_and_page_are_clamped(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_applications_for_admin = AsyncMock(return_value=([], 0))

            result = await admin_get_applications_list(mock_db, page=0, limit=1000)

        assert result["page"] == 1
        assert result["total_pages"] == 0
        kwargs = mock_repo.get_applications_for_admin.await_args.kwargs
        assert kwargs["skip"] == 0
        assert kwargs["limit"] == 100


class TestAdminApplicationDetail:
    """Tests for detail and delete."""

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=None)

            with pytest.raises(ApplicationNotFoundError):
                await admin_get_application_detail(mock_db, uuid4())

    @pytest.mark.asyncio
    async def test_delete_removes_blob_then_record(
        self, mock_db, mock_storage, sample_application_model
    ):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=sample_application_model)
            mock_repo.delete_by_ids = AsyncMock(return_value=1)

            await admin_delete_application(mock_db, mock_storage, sample_application_model.id)

        mock_storage.remove_many.assert_awaited_once_with(
            [sample_application_model.attachment_path]
        )
        mock_repo.delete_by_ids.assert_awaited_once_with(
            mock_db, [sample_application_model.id]
        )

    @pytest.mark.asyncio
    async def test_delete_tolerates_blob_failure(
        self, mock_db, mock_storage, sample_application_model
    ):
        mock_storage.remove_many.side_effect = StorageError("gone")

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=sample_application_model)
            mock_repo.delete_by_ids = AsyncMock(return_value=1)

            await admin_delete_application(mock_db, mock_storage, sample_application_model.id)

        mock_repo.delete_by_ids.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_record_failure(self, mock_db, mock_storage, sample_application_model):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_by_id = AsyncMock(return_value=sample_application_model)
            mock_repo.delete_by_ids = AsyncMock(side_effect=RuntimeError("locked"))

            with pytest.raises(PersistenceFailureError):
                await admin_delete_application(
                    mock_db, mock_storage, sample_application_model.id
                )


class TestVacancies:
    """Tests for vacancy management."""

    @pytest.mark.asyncio
    async def test_create_strips_name(self, mock_db):
        vacancy = MagicMock(spec=Vacancy)
        vacancy.id = uuid4()

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.create_vacancy = AsyncMock(return_value=vacancy)

            result = await admin_create_vacancy(mock_db, "  Driver  ")

        assert result is vacancy
        mock_repo.create_vacancy.assert_awaited_once_with(mock_db, name="Driver", active=True)

    @pytest.mark.asyncio
    async def test_create_duplicate(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.create_vacancy = AsyncMock(
                side_effect=IntegrityError("INSERT", {}, Exception("unique"))
            )

            with pytest.raises(DuplicateVacancyError) as exc_info:
                await admin_create_vacancy(mock_db, "Driver")

        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_update_rename_conflict_reports_new_name(self, mock_db):
        vacancy = MagicMock(spec=Vacancy)
        vacancy.name = "Driver"

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_vacancy = AsyncMock(return_value=vacancy)
            mock_repo.update_vacancy = AsyncMock(
                side_effect=IntegrityError("UPDATE", {}, Exception("unique"))
            )

            with pytest.raises(DuplicateVacancyError) as exc_info:
                await admin_update_vacancy(mock_db, uuid4(), name=" Cook ")

        assert "'Cook'" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_update_missing(self, mock_db):
        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_vacancy = AsyncMock(return_value=None)

            with pytest.raises(VacancyNotFoundError):
                await admin_update_vacancy(mock_db, uuid4(), active=False)

    @pytest.mark.asyncio
    async def test_delete(self, mock_db):
        vacancy = MagicMock(spec=Vacancy)

        with patch(f"{SERVICE}.repository") as mock_repo:
            mock_repo.get_vacancy = AsyncMock(return_value=vacancy)
            mock_repo.delete_vacancy = AsyncMock()

            await admin_delete_vacancy(mock_db, uuid4())

        mock_repo.delete_vacancy.assert_awaited_once_with(mock_db, vacancy)
