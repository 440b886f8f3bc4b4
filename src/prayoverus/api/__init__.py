"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is applied per handler (Depends(get_current_user)) rather than
per router, because several routers mix open reads (public feed, public
groups, comments) with authenticated mutations.
"""

from fastapi import APIRouter

from prayoverus.api.auth import router as auth_router
from prayoverus.api.groups import router as groups_router
from prayoverus.api.health import router as health_router
from prayoverus.api.prayers import router as prayers_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(prayers_router, tags=["prayers", "support", "comments"])
api_router.include_router(groups_router, tags=["groups"])
