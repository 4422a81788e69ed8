"""API route aggregation.

All routers registered here get mounted in main.py.

Auth is applied at the include_router level where a whole router shares
one requirement. Health and auth are open; the AI, settings, migration
and admin routers declare their own identity dependencies because they
need the identity inside the handler.
"""

from fastapi import APIRouter

from auratask.api.admin import router as admin_router
from auratask.api.ai import router as ai_router
from auratask.api.auth import router as auth_router
from auratask.api.health import router as health_router
from auratask.api.migration import router as migration_router
from auratask.api.settings import router as settings_router

api_router = APIRouter(prefix="/api/v1")

# Open routes
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes, identity checked per handler
api_router.include_router(settings_router, tags=["settings"])
api_router.include_router(ai_router, tags=["ai"])
api_router.include_router(migration_router, tags=["migration"])
api_router.include_router(admin_router, tags=["admin"])
