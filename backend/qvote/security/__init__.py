from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from qvote.core.settings import get_settings


def _parse_jwt_token(token: str) -> Optional[str]:
    settings = get_settings()
    secret = settings.jwt_secret or "your-secret-key"
    algorithm = settings.jwt_algorithm or "HS256"
    try:
        payload = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if isinstance(subject, str) and subject:
        return subject
    return None


def get_voter_identity(request: Request) -> Optional[str]:
    """
    Identity id of a voter already signed in through the external provider.

    The sign-in layer hands the engine a bearer JWT whose ``sub`` claim is the
    provider-scoped user id. Missing or invalid tokens simply mean "not signed in";
    the engine decides whether that matters for the event.
    """
    auth = request.headers.get("authorization", "")
    parts = auth.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return _parse_jwt_token(parts[1])
    return None


def issue_identity_token(user_id: str) -> str:
    settings = get_settings()
    return jwt.encode({"sub": user_id}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
