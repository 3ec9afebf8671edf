from __future__ import annotations

import time

import jwt
import pytest

from order_sync.application.security import authorize, build_principal, decode_token
from order_sync.shared.config import Settings


def _token(settings: Settings, **claims) -> str:
    now = int(time.time())
    base = {"iss": settings.jwt_issuer, "sub": "ops@demo", "iat": now, "exp": now + 60, "jti": "j1"}
    base.update(claims)
    return jwt.encode(base, settings.jwt_secret, algorithm="HS256")


def test_decode_and_build_principal(settings: Settings) -> None:
    token = _token(settings, roles=["viewer"], perms=["webhooks:read"])
    principal = build_principal(decode_token(settings, token))
    assert principal.sub == "ops@demo"
    assert principal.roles == ["viewer"]
    assert principal.perms == ["webhooks:read"]
    assert principal.jti == "j1"


def test_wrong_issuer_is_rejected(settings: Settings) -> None:
    with pytest.raises(Exception) as exc_info:
        decode_token(settings, _token(settings, iss="someone-else"))
    assert exc_info.value.status_code == 401


def test_expired_token(settings: Settings) -> None:
    with pytest.raises(Exception) as exc_info:
        decode_token(settings, _token(settings, exp=int(time.time()) - 10))
    assert exc_info.value.detail["detail"] == "Token expired"


def test_authorize(settings: Settings) -> None:
    reader = build_principal({"sub": "a", "perms": ["webhooks:read"]})
    admin = build_principal({"sub": "b", "roles": ["admin"]})
    nobody = build_principal({"sub": "c"})

    authorize(reader, "webhooks:read")
    authorize(admin, "webhooks:read")
    with pytest.raises(Exception) as exc_info:
        authorize(nobody, "webhooks:read")
    assert exc_info.value.status_code == 403
