from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.db import SessionLocal
from app.errors import Forbidden, Unauthenticated
from app.services import auth as auth_service
from app.services.access import ModuleAccess, Operation, Principal, authorize
from app.services.permission_cache import PermissionCache, get_permission_cache


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    # EventSource cannot set headers
    return request.query_params.get("access_token")


def require_user_auth(request: Request, db: Session = Depends(get_db)) -> Principal:
    token = _bearer_token(request)
    if not token:
        raise Unauthenticated()
    principal = auth_service.principal_from_token(db, token)
    request.state.principal = principal
    return principal


def require_role(role: str):
    def _require_role(principal: Principal = Depends(require_user_auth)) -> Principal:
        if principal.role != role:
            raise Forbidden(f"Role '{role}' required")
        return principal

    return _require_role


require_admin = require_role("admin")


def require_module_access(operation: Operation | str):
    """Authorize the current principal on the ``module_name`` path parameter."""

    def _require_module_access(
        module_name: str,
        principal: Principal = Depends(require_user_auth),
        db: Session = Depends(get_db),
        cache: PermissionCache = Depends(get_permission_cache),
    ) -> ModuleAccess:
        return authorize(db, principal, module_name, operation, cache)

    return _require_module_access


__all__ = [
    "get_db",
    "require_admin",
    "require_module_access",
    "require_role",
    "require_user_auth",
]
