from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import jwt

from centerdesk.core.config import settings

DEFAULT_ACCESS_TOKEN_MINUTES = 60


def create_access_token(
    *, subject: Dict, expires_minutes: Optional[int] = None
) -> str:
    """Sign a staff access token. Tokens are normally issued by the identity provider; used by tooling and tests."""
    if expires_minutes is None:
        expires_minutes = DEFAULT_ACCESS_TOKEN_MINUTES

    to_encode = subject.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )
    return encoded_jwt
