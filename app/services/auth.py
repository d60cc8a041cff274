"""Bearer tokens for principals.

Tokens are HS256 JWTs carrying the user id and email. Identity itself is
established elsewhere; this module only issues and verifies tokens.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import Unauthenticated
from app.models.user import User
from app.services.access import Principal
from app.services.permission_cache import PermissionCache, get_permission_cache
from app.services.users import Users, find_by_email

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"


def issue_token(
    user: User,
    expires_seconds: int | None = None,
    cache: PermissionCache | None = None,
) -> str:
    """Issue an access token. Cached permissions for the user are dropped."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(seconds=expires_seconds or settings.jwt_expires_seconds),
        "jti": str(uuid.uuid4()),
    }
    (cache or get_permission_cache()).invalidate_principal(user.id)
    logger.info("Issued token for %s", user.email)
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except jwt.InvalidTokenError as exc:
        logger.info("Rejected token: %s", exc)
        raise Unauthenticated("Invalid token")


def principal_from_token(db: Session, token: str) -> Principal:
    """Resolve a bearer token to an active user.

    Unknown emails are registered as plain users on first sight.
    """
    claims = decode_token(token)
    user = None
    if claims.get("sub"):
        try:
            user = db.get(User, uuid.UUID(str(claims["sub"])))
        except ValueError:
            raise Unauthenticated("Invalid token subject")
    elif claims.get("email"):
        user = find_by_email(db, claims["email"]) or Users.get_or_create(
            db, claims["email"], claims.get("name")
        )
    if user is None:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("User is inactive")
    return Principal(id=user.id, email=user.email, role=user.role.value, name=user.name)
