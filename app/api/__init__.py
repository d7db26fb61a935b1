from fastapi import APIRouter
from app.api.v1 import (
    companyrouter,
    userrouter,
    expense_route,
    approvalroute,
    approval_rule_route,
    dashboard_route,
    reference_route,
)

api_router = APIRouter()

api_router.include_router(companyrouter.router, prefix="/api/v1")
api_router.include_router(userrouter.router, prefix="/api/v1")
api_router.include_router(expense_route.router, prefix="/api/v1")
api_router.include_router(approvalroute.router, prefix="/api/v1")
api_router.include_router(approval_rule_route.router, prefix="/api/v1")
api_router.include_router(dashboard_route.router, prefix="/api/v1")
api_router.include_router(reference_route.router, prefix="/api/v1")
