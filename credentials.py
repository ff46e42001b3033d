import logging
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings
from errors import InvalidCredential

logger = logging.getLogger(__name__)


def _serializer(secret: Optional[str] = None) -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(
        secret or settings.token_secret, salt="entries-bearer"
    )


def issue_token(owner_id: str, *, secret: Optional[str] = None) -> str:
    if not owner_id:
        raise ValueError("Owner id cannot be empty")
    return _serializer(secret).dumps({"sub": owner_id})


def verify_token(
    token: str,
    *,
    secret: Optional[str] = None,
    max_age_hours: Optional[int] = None,
) -> str:
    settings = get_settings()
    max_age = (max_age_hours or settings.token_max_age_hours) * 3600
    try:
        data = _serializer(secret).loads(token, max_age=max_age)
    except SignatureExpired as exc:
        logger.warning("token_rejected: reason=expired")
        raise InvalidCredential("Authentication token has expired") from exc
    except BadSignature as exc:
        logger.warning("token_rejected: reason=bad_signature")
        raise InvalidCredential("Invalid authentication token") from exc

    owner_id = data.get("sub") if isinstance(data, dict) else None
    if not owner_id or not isinstance(owner_id, str):
        logger.warning("token_rejected: reason=missing_subject")
        raise InvalidCredential("Invalid authentication token")
    return owner_id


def token_from_headers(
    authorization: Optional[str], x_auth_token: Optional[str]
) -> Optional[str]:
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if x_auth_token and x_auth_token.strip():
        return x_auth_token.strip()
    return None
