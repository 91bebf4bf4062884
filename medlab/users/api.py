from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medlab.core.auth import AuthUser
from medlab.core.database import get_db
from medlab.core.rbac import require_authenticated, require_roles
from medlab.platform.paging import PagedResponse, PageRequest
from medlab.users.schemas import Gender, Role, RoleRequest, UserCreate, UserFilters, UsernameRead, UserRead, UserUpdate
from medlab.users.service import UserService, user_service


router = APIRouter(prefix="/api/users", tags=["users"])

require_admin = require_roles(Role.ADMIN.value)


def get_user_service() -> UserService:
    return user_service


@router.get("", response_model=PagedResponse[UserRead])
def list_users(
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=500),
    sort_by: str = Query(default="id", alias="sortBy"),
    direction: str = Query(default="ASC", pattern="(?i)^(asc|desc)$"),
    first_name: str | None = Query(default=None, alias="firstName"),
    last_name: str | None = Query(default=None, alias="lastName"),
    username: str | None = Query(default=None),
    hospital_id: str | None = Query(default=None, alias="hospitalId"),
    email: str | None = Query(default=None),
    role: Role | None = Query(default=None),
    gender: Gender | None = Query(default=None),
    deleted: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> PagedResponse[UserRead]:
    return service.list_users(
        db,
        PageRequest(page=page, size=size, sort_by=sort_by, direction=direction),
        UserFilters(
            first_name=first_name,
            last_name=last_name,
            username=username,
            hospital_id=hospital_id,
            email=email,
            role=role,
            gender=gender,
            deleted=deleted,
        ),
    )


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.create_user(db, payload)


@router.get("/me", response_model=UserRead)
def get_current_user(
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    user: AuthUser = Depends(require_authenticated),
) -> UserRead:
    return service.get_current_user(db, user.sub)


@router.put("/me", response_model=UserRead)
def update_current_user(
    payload: UserUpdate,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    user: AuthUser = Depends(require_authenticated),
) -> UserRead:
    return service.update_current_user(db, user.sub, payload)


@router.get("/email/{email}/username", response_model=UsernameRead)
def get_username_by_email(
    email: str,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
) -> UsernameRead:
    return UsernameRead(username=service.get_username_by_email(db, email))


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.get_user(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.update_user(db, user_id, payload)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> Response:
    service.delete_user(db, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{user_id}/restore", response_model=UserRead)
def restore_user(
    user_id: int,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.restore_user(db, user_id)


@router.put("/{user_id}/roles/add", response_model=UserRead)
def add_role(
    user_id: int,
    payload: RoleRequest,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.add_role(db, user_id, payload.role)


@router.put("/{user_id}/roles/remove", response_model=UserRead)
def remove_role(
    user_id: int,
    payload: RoleRequest,
    db: Session = Depends(get_db),
    service: UserService = Depends(get_user_service),
    _: AuthUser = Depends(require_admin),
) -> UserRead:
    return service.remove_role(db, user_id, payload.role)
