"""
api/routes/users.py -- Read-only principal listing (admin only).

Routes:
  GET /api/users        -- all principals, sanitized
  GET /api/users/{id}   -- one principal, 404 if absent
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import PrincipalResponse, UsersResponse
from auth.dependencies import require_admin
from auth.models import Principal
from auth.store import PrincipalStore

router = APIRouter()


@router.get("/users", response_model=UsersResponse)
def list_users(request: Request, current: Principal = Depends(require_admin)) -> UsersResponse:
    store: PrincipalStore = request.app.state.store
    users = [PrincipalResponse.from_principal(p) for p in store.list_principals()]
    return UsersResponse(message="Successfully retrieved users", users=users, count=len(users))


@router.get("/users/{user_id}", response_model=PrincipalResponse)
def get_user(request: Request, user_id: int, current: Principal = Depends(require_admin)) -> PrincipalResponse:
    store: PrincipalStore = request.app.state.store
    principal = store.get_by_id(user_id)
    if principal is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return PrincipalResponse.from_principal(principal)
