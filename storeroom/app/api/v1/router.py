from fastapi import APIRouter

from storeroom.app.api.v1.endpoints.health import router as health_router
from storeroom.app.api.v1.endpoints.categories import router as categories_router
from storeroom.app.api.v1.endpoints.components import router as components_router
from storeroom.app.api.v1.endpoints.requests import router as requests_router
from storeroom.app.api.v1.endpoints.usage import router as usage_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(categories_router, tags=["categories"])
router.include_router(components_router, tags=["components"])
router.include_router(requests_router, tags=["requests"])
router.include_router(usage_router, tags=["usage"])
