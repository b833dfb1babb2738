from datetime import timedelta

import jwt
import pytest
from fastapi import Depends, FastAPI, HTTPException
from fastapi.testclient import TestClient
from slotkeeper.config import Settings, get_settings
from slotkeeper.deps import get_operator_id, get_payment_provider
from slotkeeper.utils.auth import (
    create_operator_token,
    create_payment_token,
    decode_operator_token,
    decode_payment_token,
)

SECRET = "test-secret-with-at-least-32-bytes!!"
PAYMENT_SECRET = "test-payment-secret-at-least-32-bytes"


def _settings() -> Settings:
    return Settings(auth_secret=SECRET)


@pytest.mark.asyncio
async def test_get_operator_id_accepts_valid_token() -> None:
    token = create_operator_token(operator_id=123, secret=SECRET)
    assert await get_operator_id(authorization=f"Bearer {token}", settings=_settings()) == 123


@pytest.mark.asyncio
async def test_get_operator_id_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_operator_id(authorization=None, settings=_settings())
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_get_operator_id_rejects_wrong_scheme() -> None:
    token = create_operator_token(operator_id=1, secret=SECRET)
    with pytest.raises(HTTPException) as excinfo:
        await get_operator_id(authorization=f"Basic {token}", settings=_settings())
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_get_operator_id_rejects_expired_token() -> None:
    token = create_operator_token(operator_id=1, secret=SECRET, expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as excinfo:
        await get_operator_id(authorization=f"Bearer {token}", settings=_settings())
    assert excinfo.value.status_code == 401


def test_decode_rejects_token_without_operator_scope() -> None:
    token = jwt.encode({"sub": "1"}, SECRET, algorithm="HS256")
    with pytest.raises(ValueError):
        decode_operator_token(token, secret=SECRET, algorithms=["HS256"])


def test_protected_route_through_test_client() -> None:
    app = FastAPI()

    @app.get("/protected")
    async def protected(operator_id: int = Depends(get_operator_id)) -> dict[str, int]:
        return {"operator_id": operator_id}

    client = TestClient(app)
    token = create_operator_token(operator_id=42, secret=get_settings().auth_secret)
    assert client.get("/protected", headers={"Authorization": f"Bearer {token}"}).json() == {"operator_id": 42}
    assert client.get("/protected").status_code == 401
    assert client.get("/protected", headers={"Authorization": "Bearer nope"}).status_code == 401


@pytest.mark.asyncio
async def test_get_payment_provider_accepts_payment_tokens_only() -> None:
    settings = Settings(auth_secret=SECRET, payment_secret=PAYMENT_SECRET)
    token = create_payment_token(provider="acme-pay", secret=PAYMENT_SECRET)
    assert await get_payment_provider(authorization=f"Bearer {token}", settings=settings) == "acme-pay"

    operator_token = create_operator_token(operator_id=1, secret=PAYMENT_SECRET)
    for header in (None, f"Bearer {operator_token}", "Bearer nope"):
        with pytest.raises(HTTPException) as excinfo:
            await get_payment_provider(authorization=header, settings=settings)
        assert excinfo.value.status_code == 401

    with pytest.raises(ValueError):
        decode_payment_token(token, secret=SECRET, algorithms=["HS256"])
