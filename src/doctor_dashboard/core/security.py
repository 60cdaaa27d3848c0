"""
Authenticated actor resolution

The identity provider issues HS256 bearer tokens; this module only verifies
them and turns the claims into an ``Actor`` that is handed explicitly to the
service operations that need one.
"""

from dataclasses import dataclass
from typing import Optional
import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import SecurityConfig, get_security_config
from .exceptions import AuthenticationRequired

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Actor:
    """The authenticated doctor behind a request"""
    uid: str
    display_name: Optional[str] = None
    email: Optional[str] = None


def decode_token(token: str, config: Optional[SecurityConfig] = None) -> Actor:
    """Verify a bearer token and build the actor it identifies"""
    config = config or get_security_config()
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret_key,
            algorithms=[config.jwt_algorithm],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationRequired("Session expired, please log in again.") from e
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        raise AuthenticationRequired() from e

    uid = claims.get("sub")
    if not uid:
        raise AuthenticationRequired()

    return Actor(uid=str(uid), display_name=claims.get("name"), email=claims.get("email"))


def issue_token(actor: Actor, config: Optional[SecurityConfig] = None, **extra_claims) -> str:
    """Mint a token for ``actor``; used by local tooling and tests"""
    config = config or get_security_config()
    claims = {"sub": actor.uid, **extra_claims}
    if actor.display_name:
        claims["name"] = actor.display_name
    if actor.email:
        claims["email"] = actor.email
    return jwt.encode(claims, config.jwt_secret_key, algorithm=config.jwt_algorithm)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Actor:
    """FastAPI dependency resolving the request's actor"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequired()
    return decode_token(credentials.credentials)


def require_actor(actor: Optional[Actor]) -> Actor:
    if actor is None or not actor.uid:
        raise AuthenticationRequired()
    return actor
