"""Scoped session authentication and FastAPI security dependencies.

The application keeps two independent identity contexts: the "main"
session used by creators on the dashboard and the lightweight "quiz"
session used by participants on the public quiz routes. Both are built
from the same `ScopedAuth` class and differ only in their
`SessionScope` (cookie name, token audience and lifetime). The main
scope additionally resolves its subject to a registered `User` through
`get_current_user`.

Tokens are JWTs signed with the configured secret and carry the scope
name as audience, so a token issued for one scope is rejected by the
other. They are read from the scope's cookie or from an
`Authorization: Bearer` header. Verification failures raise
HTTPException(401) so the helpers can be used directly as route
dependencies.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .database import get_session

logger = logging.getLogger("quizcraft.auth")
bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    """The `{id, email, name}` triple resolved from a session."""
    id: str
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class SessionScope:
    name: str
    cookie_name: str
    expire_hours: int


class ScopedAuth:
    """Issue and verify session tokens for a single `SessionScope`."""

    def __init__(self, scope: SessionScope):
        self.scope = scope

    def issue_token(self, identity: Identity) -> str:
        expire = datetime.now(timezone.utc) + timedelta(hours=self.scope.expire_hours)
        payload = {
            "sub": identity.id,
            "email": identity.email,
            "name": identity.name,
            "aud": self.scope.name,
            "exp": int(expire.timestamp()),
        }
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

    def decode_token(self, token: str) -> dict:
        """Decode and verify a token of this scope.

        Returns the decoded payload on success or raises an HTTPException
        with status 401 on failure.
        """
        try:
            return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM], audience=self.scope.name)
        except jwt.ExpiredSignatureError:
            raise HTTPException(status_code=401, detail='token expired')
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail='invalid token')

    def set_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.scope.cookie_name,
            value=token,
            max_age=self.scope.expire_hours * 3600,
            httponly=True,
            secure=settings.COOKIE_SECURE,
            samesite="lax",
            path="/",
        )

    def clear_cookie(self, response: Response) -> None:
        response.delete_cookie(key=self.scope.cookie_name, path="/")

    def _token(self, request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
        if credentials is not None and credentials.credentials:
            return credentials.credentials
        return request.cookies.get(self.scope.cookie_name)

    def identity_from_token(self, token: str) -> Identity:
        payload = self.decode_token(token)
        subject = payload.get("sub")
        email = payload.get("email")
        if not subject or not email:
            raise HTTPException(status_code=401, detail='invalid token payload')
        return Identity(id=subject, email=email, name=payload.get("name"))

    def optional_identity(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    ) -> Optional[Identity]:
        """Dependency returning the session identity, or None when signed out.

        A present but invalid token still fails with 401.
        """
        token = self._token(request, credentials)
        if not token:
            return None
        return self.identity_from_token(token)

    def require_identity(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    ) -> Identity:
        """Dependency returning the session identity or raising 401."""
        token = self._token(request, credentials)
        if not token:
            raise HTTPException(status_code=401, detail='not authenticated')
        return self.identity_from_token(token)


main_auth = ScopedAuth(SessionScope(
    name="main",
    cookie_name=settings.MAIN_SESSION_COOKIE,
    expire_hours=settings.JWT_EXPIRE_HOURS,
))
quiz_auth = ScopedAuth(SessionScope(
    name="quiz",
    cookie_name=settings.QUIZ_SESSION_COOKIE,
    expire_hours=settings.QUIZ_JWT_EXPIRE_HOURS,
))


def get_current_user(
    identity: Identity = Depends(main_auth.require_identity),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated creator.

    Resolves the main-session subject to a `User` row and raises
    HTTPException(401) when the account no longer exists.
    """
    user = repositories.UserRepository(db).get(identity.id)
    if not user:
        logger.info("session for unknown user %s rejected", identity.id)
        raise HTTPException(status_code=401, detail='user not found')
    return user
