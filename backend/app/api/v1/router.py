from fastapi import APIRouter

from backend.app.api.v1.endpoints.health import router as health_router
from backend.app.api.v1.endpoints.approvisionnements import router as approvisionnements_router
from backend.app.api.v1.endpoints.orders import router as orders_router
from backend.app.api.v1.endpoints.stock import router as stock_router
from backend.app.api.v1.endpoints.stock_management import router as stock_management_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(approvisionnements_router, tags=["approvisionnements"])
router.include_router(orders_router, tags=["orders"])
router.include_router(stock_management_router, tags=["stock_management"])
router.include_router(stock_router, tags=["stock"])
