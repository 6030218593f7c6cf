"""
Applications Service Layer

Business logic for job applications. Orchestrates the record store
(repository.py) and the blob store (core/storage.py).

This module implements:
1. Admission Pipeline (admit_submission):
   - Per-client throttling
   - Field validation (required fields, e-mail, CPF checksum, lengths)
   - Attachment checks (presence, content type, size)
   - Duplicate check against the retention window
   No durable writes happen during admission.

2. Write Coordinator (commit_submission):
   - Upload the attachment first, then insert the record
   - On insert failure, delete the uploaded blob and report the failure
   - A unique-constraint violation on insert is reported as a duplicate

3. Status Workflow (transition_status):
   - Any status may follow any other
   - Each transition appends one history entry and updates the
     current-status projection in the same transaction

4. Admin operations: browsing, detail, delete, vacancies

Consistency:
- A record never exists without its blob; a blob may outlive a failed
  insert if its compensating delete also fails (logged)
- The duplicate pre-check is advisory; the unique constraint on
  (national_id_normalized, role_normalized) is the source of truth
"""

import logging
import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from recruitment_api.core.config import settings
from recruitment_api.core.rate_limit import check_rate_limit
from recruitment_api.core.storage import StorageError, SupabaseStorage
from recruitment_api.modules.applications import repository
from recruitment_api.modules.applications.helpers import (
    as_utc,
    build_attachment_key,
    parse_submitted_at,
)
from recruitment_api.modules.applications.models import (
    PERSON_ROLE_CONSTRAINT,
    Application,
    ApplicationStatus,
    StatusHistoryEntry,
    Vacancy,
)
from recruitment_api.modules.applications.validators import (
    clean_submission,
    normalize_national_id,
    normalize_role,
    validate_submission,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


# ============================================
# Errors
# ============================================


class ApplicationServiceError(Exception):
    """Base exception for application service errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class ValidationFailureError(ApplicationServiceError):
    """Raised when a submission is incomplete or malformed."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
        )


class DuplicateApplicationError(ApplicationServiceError):
    """
    Raised when the applicant already applied for the role within the
    retention window.

    The timing fields are only known when the duplicate was found by the
    pre-check; a duplicate caught by the unique constraint carries none.
    """

    def __init__(
        self,
        message: str,
        submitted_at: datetime | None = None,
        reapply_after: datetime | None = None,
        days_left: int | None = None,
    ):
        self.submitted_at = submitted_at
        self.reapply_after = reapply_after
        self.days_left = days_left
        super().__init__(
            message=message,
            error_code="DUPLICATE_APPLICATION",
            status_code=409,
        )


class ThrottledError(ApplicationServiceError):
    """Raised when a client exceeds the submission rate limit."""

    def __init__(self, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            message="Too many requests. Please try again shortly.",
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
        )


class StorageFailureError(ApplicationServiceError):
    """Raised when the attachment cannot be stored."""

    def __init__(self, message: str = "Failed to store the attached file."):
        super().__init__(
            message=message,
            error_code="STORAGE_FAILURE",
            status_code=500,
        )


class PersistenceFailureError(ApplicationServiceError):
    """Raised when the record store rejects a write for an unexpected reason."""

    def __init__(self, message: str = "Failed to save the application."):
        super().__init__(
            message=message,
            error_code="PERSISTENCE_FAILURE",
            status_code=500,
        )


class ApplicationNotFoundError(ApplicationServiceError):
    """Raised when an application is not found."""

    def __init__(self, application_id: UUID | None = None):
        message = (
            f"Application {application_id} not found" if application_id else "Application not found"
        )
        super().__init__(
            message=message,
            error_code="APPLICATION_NOT_FOUND",
            status_code=404,
        )


class InvalidStatusError(ApplicationServiceError):
    """Raised when a status is not part of the enumeration."""

    def __init__(self, status: str):
        allowed = ", ".join(s.value for s in ApplicationStatus)
        super().__init__(
            message=f"Invalid status '{status}'. Allowed: {allowed}",
            error_code="INVALID_STATUS",
            status_code=400,
        )


class VacancyNotFoundError(ApplicationServiceError):
    def __init__(self, vacancy_id: UUID):
        super().__init__(
            message=f"Vacancy {vacancy_id} not found",
            error_code="VACANCY_NOT_FOUND",
            status_code=404,
        )


class DuplicateVacancyError(ApplicationServiceError):
    def __init__(self, name: str):
        super().__init__(
            message=f"A vacancy named '{name}' already exists",
            error_code="DUPLICATE_VACANCY",
            status_code=409,
        )


# ============================================
# Submission
# ============================================


@dataclass(frozen=True)
class SubmittedAttachment:
    """The uploaded document, read fully into memory."""

    filename: str | None
    content_type: str
    data: bytes


@dataclass(frozen=True)
class AdmittedSubmission:
    """A submission that passed admission and is ready to be written."""

    fields: dict[str, str]
    attachment: SubmittedAttachment
    national_id_normalized: str
    role_normalized: str
    submitted_at: datetime


def _format_day(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def _check_attachment(attachment: SubmittedAttachment | None) -> SubmittedAttachment:
    if attachment is None or not attachment.data:
        raise ValidationFailureError("An attached file is required.")

    if attachment.content_type not in settings.allowed_content_types_list:
        raise ValidationFailureError("Invalid file format. Send a PDF, DOC or DOCX file.")

    if len(attachment.data) > settings.max_file_bytes:
        raise ValidationFailureError(
            f"File too large. Maximum size: {settings.max_file_mb} MB."
        )

    return attachment


async def _check_duplicate(
    db: AsyncSession,
    national_id_normalized: str,
    role_normalized: str,
    now: datetime,
    retention_days: int,
) -> None:
    """
    Reject when the same person applied for the same role within the window.

    Raises:
        DuplicateApplicationError: With the prior submission date and the
            date from which a new application is accepted
    """
    retention = timedelta(days=retention_days)
    prior = await repository.find_recent_duplicate(
        db, national_id_normalized, role_normalized, now - retention
    )
    if prior is None:
        return

    prior_submitted_at = as_utc(prior.submitted_at)
    reapply_after = prior_submitted_at + retention
    elapsed_days = (now - prior_submitted_at).days
    days_left = max(0, retention_days - elapsed_days)

    logger.warning(f"Duplicate submission rejected: prior application {prior.id}")
    raise DuplicateApplicationError(
        f'An application for the role "{prior.target_role}" with the same national ID '
        f"was already submitted on {_format_day(prior_submitted_at)}. "
        f"Under our policy you must wait {days_left} day(s), until "
        f"{_format_day(reapply_after)}, before applying again.",
        submitted_at=prior_submitted_at,
        reapply_after=reapply_after,
        days_left=days_left,
    )


async def admit_submission(
    db: AsyncSession,
    submission: dict[str, object],
    attachment: SubmittedAttachment | None,
    client_key: str,
    *,
    now: datetime | None = None,
    retention_days: int | None = None,
) -> AdmittedSubmission:
    """
    Decide whether a submission may be written.

    Checks run cheapest first and stop at the first failure: rate limit,
    field validation, attachment, duplicate. Nothing is written.

    Args:
        db: Database session (read only here)
        submission: Raw form fields
        attachment: The uploaded file, if any
        client_key: Throttling key for the caller (see rate_limit.client_key)
        now: Reference time, defaults to the current UTC time
        retention_days: Duplicate window, defaults to RETENTION_DAYS

    Returns:
        AdmittedSubmission with cleaned fields and normalized keys

    Raises:
        ThrottledError: If the client exceeded the rate limit
        ValidationFailureError: If fields or attachment are invalid
        DuplicateApplicationError: If a recent application exists
    """
    now = now or datetime.now(UTC)
    retention_days = retention_days or settings.retention_days

    if not await check_rate_limit(client_key):
        logger.warning(f"Submission throttled for client {client_key}")
        raise ThrottledError(settings.rate_limit_window_seconds)

    fields = clean_submission(submission)
    result = validate_submission(fields)
    if not result.is_valid:
        raise ValidationFailureError(result.error or "Invalid submission.")

    attachment = _check_attachment(attachment)

    try:
        submitted_at = parse_submitted_at(fields["submitted_at"], default=now)
    except ValueError as e:
        raise ValidationFailureError("Invalid submission date.") from e

    national_id_normalized = normalize_national_id(fields["national_id"])
    role_normalized = normalize_role(fields["target_role"])

    await _check_duplicate(db, national_id_normalized, role_normalized, now, retention_days)

    return AdmittedSubmission(
        fields=fields,
        attachment=attachment,
        national_id_normalized=national_id_normalized,
        role_normalized=role_normalized,
        submitted_at=submitted_at,
    )


def _is_person_role_violation(error: IntegrityError) -> bool:
    """
    True when the insert collided on the person/role key.

    PostgreSQL names the constraint; SQLite lists its columns.
    """
    message = str(error.orig)
    return PERSON_ROLE_CONSTRAINT in message or (
        "applications.national_id_normalized" in message
        and "applications.role_normalized" in message
    )


async def _remove_uploaded_blob(storage: SupabaseStorage, key: str) -> None:
    """Compensating delete; failures are logged and never raised."""
    try:
        await storage.remove_many([key])
        logger.info(f"Removed orphaned upload {key}")
    except StorageError as e:
        logger.error(f"Failed to remove orphaned upload {key}: {e}")


async def commit_submission(
    db: AsyncSession,
    storage: SupabaseStorage,
    admitted: AdmittedSubmission,
) -> Application:
    """
    Store the attachment, then insert the application record.

    Args:
        db: Database session
        storage: Blob store client
        admitted: Output of admit_submission

    Returns:
        The committed Application

    Raises:
        StorageFailureError: If the upload fails (nothing is persisted)
        DuplicateApplicationError: If the insert loses a race against a
            concurrent submission for the same person and role
        PersistenceFailureError: If the insert fails for any other reason
    """
    fields = admitted.fields
    attachment = admitted.attachment

    key = build_attachment_key(
        role=fields["target_role"],
        name=fields["name"],
        national_id_normalized=admitted.national_id_normalized,
        content_type=attachment.content_type,
    )

    try:
        await storage.put(key, attachment.data, attachment.content_type, upsert=False)
    except StorageError as e:
        logger.error(f"Attachment upload failed for {key}: {e}")
        raise StorageFailureError() from e

    attachment_url = None
    try:
        attachment_url = await storage.sign(key, settings.signed_url_ttl_days * SECONDS_PER_DAY)
    except StorageError as e:
        logger.warning(f"Could not sign URL for {key}, continuing without it: {e}")

    try:
        application = await repository.create(
            db,
            name=fields["name"],
            national_id=fields["national_id"],
            phone=fields["phone"],
            email=fields["email"],
            postal_code=fields["postal_code"],
            city=fields["city"],
            neighborhood=fields["neighborhood"],
            street=fields["street"],
            commute_mode=fields["commute_mode"],
            target_role=fields["target_role"],
            national_id_normalized=admitted.national_id_normalized,
            role_normalized=admitted.role_normalized,
            submitted_at=admitted.submitted_at,
            attachment_path=key,
            attachment_url=attachment_url,
            current_status=ApplicationStatus.NEW,
        )
    except IntegrityError as e:
        await _remove_uploaded_blob(storage, key)
        if not _is_person_role_violation(e):
            logger.error(f"Insert of {key} violated another constraint: {e.orig}")
            raise PersistenceFailureError() from e
        logger.warning(f"Insert hit the person/role constraint, rolled back upload {key}")
        raise DuplicateApplicationError(
            f'An application for the role "{fields["target_role"]}" with the same national ID '
            f"already exists. Wait {settings.retention_days} day(s) before applying again."
        ) from e
    except Exception as e:
        logger.exception(f"Insert failed, rolling back upload {key}: {e}")
        await _remove_uploaded_blob(storage, key)
        raise PersistenceFailureError() from e

    logger.info(f"Application {application.id} stored with attachment {key}")
    return application


# ============================================
# Status Workflow
# ============================================


def list_statuses() -> list[ApplicationStatus]:
    return list(ApplicationStatus)


def parse_status(value: str) -> ApplicationStatus:
    """
    Raises:
        InvalidStatusError: If value is not a known status
    """
    try:
        return ApplicationStatus(value)
    except ValueError as e:
        raise InvalidStatusError(value) from e


async def transition_status(
    db: AsyncSession,
    application_id: UUID,
    new_status: str,
    actor_id: UUID,
    note: str | None = None,
    *,
    now: datetime | None = None,
) -> StatusHistoryEntry:
    """
    Move an application to a new status.

    Exactly one history entry is written per successful call. Invalid
    input writes nothing.

    Args:
        db: Database session
        application_id: UUID of the application
        new_status: Target status value (e.g. "InterviewPassed")
        actor_id: Reviewer performing the change
        note: Optional free-text note (up to 1000 chars)
        now: Timestamp of the change, defaults to current UTC time

    Returns:
        The recorded StatusHistoryEntry

    Raises:
        InvalidStatusError: If new_status is not in the enumeration
        ApplicationNotFoundError: If the application doesn't exist
        PersistenceFailureError: If the write fails
    """
    status = parse_status(new_status)

    application = await repository.get_by_id(db, application_id)
    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    note = note.strip()[:1000] if note and note.strip() else None

    try:
        entry = await repository.record_status_change(
            db,
            application,
            status=status,
            actor_id=actor_id,
            note=note,
            changed_at=now or datetime.now(UTC),
        )
    except Exception as e:
        logger.exception(f"Failed to record status change for {application_id}: {e}")
        raise PersistenceFailureError("Failed to update the application status.") from e

    logger.info(f"Application {application_id} moved to {status.value} by {actor_id}")
    return entry


async def get_status_history(
    db: AsyncSession,
    application_id: UUID,
) -> list[StatusHistoryEntry]:
    """
    Raises:
        ApplicationNotFoundError: If the application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)
    if not application:
        raise ApplicationNotFoundError(application_id)
    return await repository.list_history(db, application_id)


# ============================================
# Admin Browsing
# ============================================


async def admin_get_applications_list(
    db: AsyncSession,
    *,
    role: str | None = None,
    city: str | None = None,
    commute_mode: str | None = None,
    status: ApplicationStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """
    Get a page of applications, newest first.

    Returns:
        Dict with applications, total, page and total_pages
    """
    limit = min(max(1, limit), 100)
    page = max(1, page)

    applications, total = await repository.get_applications_for_admin(
        db,
        role=role,
        city=city,
        commute_mode=commute_mode,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        skip=(page - 1) * limit,
        limit=limit,
    )

    logger.info(f"Found {total} applications, returning page {page} ({len(applications)})")

    return {
        "applications": applications,
        "total": total,
        "page": page,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


async def admin_get_application_detail(
    db: AsyncSession,
    application_id: UUID,
) -> Application:
    """
    Raises:
        ApplicationNotFoundError: If application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)
    if not application:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)
    return application


async def admin_delete_application(
    db: AsyncSession,
    storage: SupabaseStorage,
    application_id: UUID,
) -> None:
    """
    Delete one application: its blob first (failure tolerated), then the
    record and its history.

    Raises:
        ApplicationNotFoundError: If application doesn't exist
        PersistenceFailureError: If the record cannot be deleted
    """
    application = await admin_get_application_detail(db, application_id)

    if application.attachment_path:
        try:
            await storage.remove_many([application.attachment_path])
        except StorageError as e:
            logger.error(f"Failed to remove attachment of {application_id}: {e}")

    try:
        await repository.delete_by_ids(db, [application_id])
    except Exception as e:
        logger.exception(f"Failed to delete application {application_id}: {e}")
        raise PersistenceFailureError("Failed to delete the application.") from e

    logger.info(f"Deleted application {application_id}")


# ============================================
# Vacancies
# ============================================


async def list_vacancies(db: AsyncSession, active_only: bool = True) -> list[Vacancy]:
    return await repository.list_vacancies(db, active_only=active_only)


async def _get_vacancy_or_raise(db: AsyncSession, vacancy_id: UUID) -> Vacancy:
    vacancy = await repository.get_vacancy(db, vacancy_id)
    if not vacancy:
        raise VacancyNotFoundError(vacancy_id)
    return vacancy


async def admin_create_vacancy(db: AsyncSession, name: str, active: bool = True) -> Vacancy:
    """
    Raises:
        DuplicateVacancyError: If the name is taken
    """
    name = name.strip()
    try:
        vacancy = await repository.create_vacancy(db, name=name, active=active)
    except IntegrityError as e:
        raise DuplicateVacancyError(name) from e
    logger.info(f"Created vacancy {vacancy.id} ({name})")
    return vacancy


async def admin_update_vacancy(
    db: AsyncSession,
    vacancy_id: UUID,
    name: str | None = None,
    active: bool | None = None,
) -> Vacancy:
    """
    Raises:
        VacancyNotFoundError: If the vacancy doesn't exist
        DuplicateVacancyError: If the new name is taken
    """
    vacancy = await _get_vacancy_or_raise(db, vacancy_id)
    name = name.strip() if name is not None else None
    current_name = vacancy.name
    try:
        return await repository.update_vacancy(db, vacancy, name=name, active=active)
    except IntegrityError as e:
        raise DuplicateVacancyError(name or current_name) from e


async def admin_delete_vacancy(db: AsyncSession, vacancy_id: UUID) -> None:
    """
    Raises:
        VacancyNotFoundError: If the vacancy doesn't exist
    """
    vacancy = await _get_vacancy_or_raise(db, vacancy_id)
    await repository.delete_vacancy(db, vacancy)
    logger.info(f"Deleted vacancy {vacancy_id}")
