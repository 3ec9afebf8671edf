from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt

from order_sync.shared.config import Settings
from order_sync.shared.problem import http_problem


@dataclass(frozen=True)
class Principal:
    sub: str
    roles: list[str]
    perms: list[str]
    jti: str


def decode_token(settings: Settings, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token, settings.jwt_secret, algorithms=["HS256"], issuer=settings.jwt_issuer
        )
    except jwt.ExpiredSignatureError:
        raise http_problem(401, "Unauthorized", "Token expired", instance="auth")
    except jwt.InvalidTokenError:
        raise http_problem(401, "Unauthorized", "Invalid token", instance="auth")


def build_principal(claims: dict[str, Any]) -> Principal:
    return Principal(
        sub=str(claims.get("sub", "")),
        roles=list(claims.get("roles") or []),
        perms=list(claims.get("perms") or []),
        jti=str(claims.get("jti") or ""),
    )


def authorize(principal: Principal, permission: str) -> None:
    if "admin" in principal.roles:
        return
    if permission not in principal.perms:
        raise http_problem(403, "Forbidden", f"Missing permission: {permission}", instance="authz")
