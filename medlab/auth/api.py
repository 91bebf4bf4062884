from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from medlab.auth.schemas import MessageRead, PasswordRequest
from medlab.auth.service import auth_account_sync_service
from medlab.core.auth import AuthUser
from medlab.core.database import get_db
from medlab.core.rbac import require_authenticated


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.put("/change-password", response_model=MessageRead)
def change_password(
    payload: PasswordRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_authenticated),
) -> MessageRead:
    return MessageRead(message=auth_account_sync_service.change_password(db, user.sub, payload))
