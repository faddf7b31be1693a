from fastapi import APIRouter
from src.api.v0.auth.main import router as auth_router
from src.api.v0.recovery.main import router as recovery_router
from src.api.v0.pin.main import router as pin_router
from src.api.v0.admin.main import router as admin_router

router = APIRouter(prefix="/api")
router.include_router(auth_router)
router.include_router(recovery_router)
router.include_router(pin_router)
router.include_router(admin_router)
