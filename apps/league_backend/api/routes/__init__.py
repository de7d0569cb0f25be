"""
API routes - combined router from all domain modules.

Shared infrastructure (limiter) lives here; every sub-router imports what it
needs from this package.
"""

import os

from fastapi import APIRouter
from slowapi import Limiter
from slowapi.util import get_remote_address

# ---------------------------------------------------------------------------
# Shared rate limiter
# ---------------------------------------------------------------------------
IS_TEST_ENV = os.getenv("ENV", "").lower() == "test"
limiter = Limiter(key_func=get_remote_address)
if IS_TEST_ENV:

    def no_op_limit(*args, **kwargs):
        """No-op decorator for test mode - doesn't apply any rate limiting."""
        def decorator(func):
            return func
        return decorator

    limiter.limit = lambda *args, **kwargs: no_op_limit()

# ---------------------------------------------------------------------------
# Import sub-routers and combine
# ---------------------------------------------------------------------------
from league_backend.api.routes.health import router as health_router
from league_backend.api.routes.sessions import router as sessions_router
from league_backend.api.routes.people import router as people_router
from league_backend.api.routes.teams import router as teams_router
from league_backend.api.routes.registrations import router as registrations_router
from league_backend.api.routes.invites import router as invites_router
from league_backend.api.routes.free_agents import router as free_agents_router

router = APIRouter()
router.include_router(health_router)
router.include_router(sessions_router)
router.include_router(people_router)
router.include_router(teams_router)
router.include_router(registrations_router)
router.include_router(invites_router)
router.include_router(free_agents_router)
