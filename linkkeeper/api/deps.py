"""
linkkeeper.api.deps — FastAPI dependency injection
===================================================
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from linkkeeper.config import LinkKeeperConfig, load_config
from linkkeeper.database.engine import create_db_engine
from linkkeeper.services.distribution_service import DistributionEngine
from linkkeeper.services.inventory_service import InventoryService
from linkkeeper.services.member_service import MemberService

_WEAK_SECRETS = frozenset({
    "linkkeeper-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"
JWT_TTL = timedelta(hours=12)


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


def create_access_token(
    discord_id: str,
    username: str,
    *,
    is_admin: bool = True,
    ttl: timedelta = JWT_TTL,
) -> str:
    """Sign a dashboard token for *discord_id*."""
    now = datetime.now(UTC)
    payload = {
        "sub": str(discord_id),
        "username": username,
        "is_admin": is_admin,
        "iat": now,
        "exp": now + ttl,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------
@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> LinkKeeperConfig:
    return load_config()


@lru_cache(maxsize=1)
def _distribution_engine(engine: Engine, cfg: LinkKeeperConfig) -> DistributionEngine:
    return DistributionEngine(engine, cfg.rules)


def get_distribution_engine(
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[LinkKeeperConfig, Depends(get_config)],
) -> DistributionEngine:
    # One instance per process; every request shares its locks.
    return _distribution_engine(engine, cfg)


@lru_cache(maxsize=1)
def _member_service(distribution: DistributionEngine) -> MemberService:
    return MemberService(
        distribution.db_engine, distribution.rules, distribution=distribution,
    )


def get_member_service(
    distribution: Annotated[DistributionEngine, Depends(get_distribution_engine)],
) -> MemberService:
    return _member_service(distribution)


@lru_cache(maxsize=1)
def _inventory_service(engine: Engine) -> InventoryService:
    return InventoryService(engine)


def get_inventory_service(
    engine: Annotated[Engine, Depends(get_engine)],
) -> InventoryService:
    return _inventory_service(engine)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------
def get_current_admin(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate JWT and return admin user payload. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload
