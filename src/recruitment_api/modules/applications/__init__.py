"""
Applications Module

Handles the job application intake and review workflow:
1. Public submission with CV upload, throttling and duplicate detection
2. Two-store write (blob store, then record store) with rollback
3. Reviewer status workflow with an append-only history
4. Retention purge of expired applications

API Endpoints:
- GET /vacancies - List open vacancies
- POST /applications - Submit an application
- /admin/... - Reviewer endpoints (see admin_router.py)
- POST /internal/cleanup - Cron-triggered retention purge

Background Jobs (via APScheduler):
- applications_purge_expired: runs every CLEANUP_INTERVAL_HOURS
- rate_limit_evict_stale_buckets: runs once per rate-limit window
"""

from .jobs import register_application_jobs
from .router import router

__all__ = ["router", "register_application_jobs"]
