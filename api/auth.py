"""
Bearer-token authentication for the HTTP layer.

Tokens are issued elsewhere; this module only verifies them (HS256 via
python-jose) and turns the claims into an ``Actor``. Services trust the role
claim and never re-check it.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from config import AuthConfig

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"

security = HTTPBearer(auto_error=False)


class Actor(BaseModel):
    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class AuthProvider:
    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> Actor:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
            ) from exc

        actor_id = claims.get("userId") or claims.get("sub") or claims.get("id")
        if not actor_id:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid authentication credentials",
            )
        role = str(claims.get("role", "USER")).upper()
        return Actor(id=str(actor_id), role=role)

    def issue(self, actor_id: str, role: str) -> str:
        """Sign a token for the given identity; used by tooling and tests."""
        return jwt.encode({"userId": actor_id, "role": role}, self.secret, algorithm=self.algorithm)


_provider = AuthProvider(AuthConfig.JWT_SECRET, AuthConfig.JWT_ALGORITHM)


def get_auth_provider() -> AuthProvider:
    return _provider


def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    provider: AuthProvider = Depends(get_auth_provider),
) -> Optional[Actor]:
    if credentials is None:
        return None
    return provider.verify(credentials.credentials)


def get_current_actor(actor: Optional[Actor] = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return actor


def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        logger.warning("Non-admin %s denied access to admin endpoint", actor.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Admin privileges required.",
        )
    return actor
