from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from medlab.auth.api import router as auth_router
from medlab.core.auth import AuthUser, get_current_user
from medlab.core.config import get_settings
from medlab.metrics import generate_metrics_payload, metrics_content_type
from medlab.patients.api import router as patients_router
from medlab.reports.api import router as reports_router
from medlab.users.api import router as users_router

router = APIRouter()
router.include_router(users_router)
router.include_router(auth_router)
router.include_router(patients_router)
router.include_router(reports_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/metrics", tags=["system"])
def metrics(user: AuthUser = Depends(get_current_user)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if "ADMIN" not in user.roles:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing role: ADMIN")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
