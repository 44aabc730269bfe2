"""Top-level API router."""

from fastapi import APIRouter

from office_console.api.routes.clients import router as clients_router
from office_console.api.routes.dashboard import router as dashboard_router
from office_console.api.routes.exports import router as exports_router
from office_console.api.routes.health import router as health_router
from office_console.api.routes.me import router as me_router
from office_console.api.routes.modules import router as modules_router
from office_console.api.routes.projects import router as projects_router
from office_console.api.routes.reports import router as reports_router
from office_console.api.routes.requirements import router as requirements_router
from office_console.api.routes.tasks import router as tasks_router
from office_console.api.routes.users import router as users_router
from office_console.api.routes.work_logs import router as work_logs_router

api_router = APIRouter()
api_router.include_router(health_router, tags=["health"])
api_router.include_router(me_router)
api_router.include_router(clients_router)
api_router.include_router(users_router)
api_router.include_router(projects_router)
api_router.include_router(modules_router)
api_router.include_router(tasks_router)
api_router.include_router(work_logs_router)
api_router.include_router(requirements_router)
api_router.include_router(reports_router)
api_router.include_router(exports_router)
api_router.include_router(dashboard_router)
