# API routers for the POS integration sandbox
# Mounted under /api by server.app

from fastapi import APIRouter

from .auth import router as auth_router
from .config import router as config_router
from .monitoring import router as monitoring_router
from .reports import router as reports_router
from .system import router as system_router
from .testing import router as testing_router

router = APIRouter()
router.include_router(config_router, tags=['config'])  # No prefix - dashboard expects /api/config and /api/configs
router.include_router(auth_router, prefix='/auth', tags=['auth'])
router.include_router(testing_router, prefix='/test', tags=['test'])
router.include_router(monitoring_router, prefix='/monitoring', tags=['monitoring'])
router.include_router(reports_router, prefix='/reports', tags=['reports'])
router.include_router(system_router, prefix='/system', tags=['system'])
