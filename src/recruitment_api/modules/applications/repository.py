"""
Applications Repository

Database operations for applications, their status history and vacancies.
Only data access lives here; the policies that decide when to call these
functions live in service.py and jobs.py.

Design Principles:
- All queries are parameterized (no SQL injection)
- Each write function commits its own unit of work
- Timezone-aware datetime handling (UTC)
"""

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import asc, delete, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Application, ApplicationStatus, StatusHistoryEntry, Vacancy


# ============================================
# Applications
# ============================================


async def create(db: AsyncSession, **fields) -> Application:
    """
    Insert a new application.

    The session is rolled back before any database error propagates so the
    caller can keep using it. Nothing touches the database after the commit:
    an error raised here always means the row was not stored.
    """
    application = Application(**fields)
    db.add(application)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return application


async def get_by_id(db: AsyncSession, id: UUID) -> Application | None:
    """Get application by ID."""
    return await db.get(Application, id)


async def find_recent_duplicate(
    db: AsyncSession,
    national_id_normalized: str,
    role_normalized: str,
    submitted_since: datetime,
) -> Application | None:
    """Most recent application for the same person and role submitted since the given time."""
    result = await db.execute(
        select(Application)
        .where(
            Application.national_id_normalized == national_id_normalized,
            Application.role_normalized == role_normalized,
            Application.submitted_at >= submitted_since,
        )
        .order_by(desc(Application.submitted_at))
        .limit(1)
    )
    return result.scalars().first()


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    role: str | None = None,
    city: str | None = None,
    commute_mode: str | None = None,
    status: ApplicationStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Application], int]:
    """
    Get applications with filters and pagination, newest first.

    Args:
        db: Database session
        role: Exact target role (as typed by the applicant)
        city: Case-insensitive substring of the city
        commute_mode: Exact commute mode
        status: Current status
        date_from: Submitted on or after this day (UTC)
        date_to: Submitted on or before the end of this day (UTC)
        search: Case-insensitive substring of name, email or national ID
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (applications on this page, total matching the filters)
    """
    query = select(Application)

    if role:
        query = query.where(Application.target_role == role)
    if city:
        query = query.where(Application.city.ilike(f"%{city}%"))
    if commute_mode:
        query = query.where(Application.commute_mode == commute_mode)
    if status:
        query = query.where(Application.current_status == status)
    if date_from:
        start_of_day = datetime.combine(date_from, time.min, tzinfo=UTC)
        query = query.where(Application.submitted_at >= start_of_day)
    if date_to:
        end_of_day = datetime.combine(date_to, time.min, tzinfo=UTC) + timedelta(days=1)
        query = query.where(Application.submitted_at < end_of_day)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Application.name.ilike(pattern),
                Application.email.ilike(pattern),
                Application.national_id.ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(desc(Application.submitted_at)).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


# ============================================
# Status history
# ============================================


async def record_status_change(
    db: AsyncSession,
    application: Application,
    status: ApplicationStatus,
    actor_id: UUID,
    note: str | None,
    changed_at: datetime,
) -> StatusHistoryEntry:
    """
    Append a history entry and update the current-status projection.

    The history row is flushed before the projection update and both are
    committed together; on failure neither is persisted.
    """
    entry = StatusHistoryEntry(
        application_id=application.id,
        actor_id=actor_id,
        status=status,
        note=note,
        created_at=changed_at,
    )
    try:
        db.add(entry)
        await db.flush()

        application.current_status = status
        application.status_changed_by = actor_id
        application.status_changed_at = changed_at
        await db.flush()

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(entry)
    return entry


async def list_history(db: AsyncSession, application_id: UUID) -> list[StatusHistoryEntry]:
    """History entries for an application, newest first."""
    result = await db.execute(
        select(StatusHistoryEntry)
        .where(StatusHistoryEntry.application_id == application_id)
        .order_by(desc(StatusHistoryEntry.created_at))
    )
    return list(result.scalars().all())


# ============================================
# Retention
# ============================================


async def select_expired_batch(
    db: AsyncSession,
    cutoff: datetime,
    limit: int,
) -> list[tuple[UUID, str]]:
    """Up to `limit` (id, attachment_path) pairs submitted strictly before cutoff."""
    result = await db.execute(
        select(Application.id, Application.attachment_path)
        .where(Application.submitted_at < cutoff)
        .limit(limit)
    )
    return [(row.id, row.attachment_path) for row in result.all()]


async def delete_by_ids(db: AsyncSession, ids: list[UUID]) -> int:
    """
    Delete applications and their history in one transaction.

    History rows are deleted explicitly so the result does not depend on the
    database enforcing ON DELETE CASCADE.

    Returns:
        Number of application rows deleted
    """
    if not ids:
        return 0
    try:
        await db.execute(
            delete(StatusHistoryEntry).where(StatusHistoryEntry.application_id.in_(ids))
        )
        result = await db.execute(delete(Application).where(Application.id.in_(ids)))
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    return result.rowcount or 0


# ============================================
# Vacancies
# ============================================


async def list_vacancies(db: AsyncSession, active_only: bool = False) -> list[Vacancy]:
    """Vacancies ordered by name."""
    query = select(Vacancy)
    if active_only:
        query = query.where(Vacancy.active.is_(True))
    result = await db.execute(query.order_by(asc(Vacancy.name)))
    return list(result.scalars().all())


async def get_vacancy(db: AsyncSession, id: UUID) -> Vacancy | None:
    return await db.get(Vacancy, id)


async def create_vacancy(db: AsyncSession, name: str, active: bool = True) -> Vacancy:
    vacancy = Vacancy(name=name, active=active)
    db.add(vacancy)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(vacancy)
    return vacancy


async def update_vacancy(
    db: AsyncSession,
    vacancy: Vacancy,
    name: str | None = None,
    active: bool | None = None,
) -> Vacancy:
    if name is not None:
        vacancy.name = name
    if active is not None:
        vacancy.active = active
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(vacancy)
    return vacancy


async def delete_vacancy(db: AsyncSession, vacancy: Vacancy) -> None:
    await db.delete(vacancy)
    await db.commit()
