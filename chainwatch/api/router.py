from fastapi import APIRouter

from chainwatch.api.routes.analytics import router as analytics_router
from chainwatch.api.routes.reports import router as reports_router
from chainwatch.api.routes.search import router as search_router
from chainwatch.api.routes.system import router as system_router
from chainwatch.api.routes.test_results import router as test_results_router

api_router = APIRouter()
api_router.include_router(system_router, tags=["system"])
api_router.include_router(reports_router, tags=["reports"])
api_router.include_router(test_results_router, tags=["test-results"])
api_router.include_router(analytics_router, tags=["analytics"])
api_router.include_router(search_router, tags=["search"])
