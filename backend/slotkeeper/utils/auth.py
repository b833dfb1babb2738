from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

OPERATOR_SCOPE = "operator"
PAYMENT_SCOPE = "payment"


def _encode(subject: str, scope: str, secret: str, algorithm: str, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + expires_delta, "scope": scope}
    return jwt.encode(payload, secret, algorithm=algorithm)


def _decode_subject(token: str, *, secret: str, algorithms: Sequence[str], scope: str) -> str:
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    if payload.get("scope") != scope:
        raise ValueError(f"token is not a {scope} token")
    sub = payload.get("sub")
    if not sub:
        raise ValueError("token missing sub")
    return str(sub)


def create_operator_token(
    *,
    operator_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    return _encode(str(operator_id), OPERATOR_SCOPE, secret, algorithm, expires_delta or timedelta(hours=12))


def decode_operator_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> int:
    sub = _decode_subject(token, secret=secret, algorithms=algorithms, scope=OPERATOR_SCOPE)
    try:
        return int(sub)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc


def create_payment_token(
    *,
    provider: str,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    """Token a payment provider presents when it reports payment events."""
    return _encode(provider, PAYMENT_SCOPE, secret, algorithm, expires_delta or timedelta(minutes=5))


def decode_payment_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> str:
    return _decode_subject(token, secret=secret, algorithms=algorithms, scope=PAYMENT_SCOPE)
