from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from assessments.core.config import settings


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def get_current_user_id(
    request: Request,
    token: str = Depends(oauth2_scheme),
) -> str:
    """Resolve the acting learner from a bearer token issued by the account service.

    Accounts live outside this service, so only the signed subject claim is trusted.
    """
    if not token:
        token = request.cookies.get("assessments_token")
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=str(getattr(settings, "jwt_issuer", "assessments")),
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="invalid token")

    request.state.user_id = user_id
    return user_id


def issue_token(user_id: str, *, expires_minutes: int = 60) -> str:
    """Mint a token the same way the account service does; used by local tooling and tests."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "iss": str(settings.jwt_issuer),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(expires_minutes))).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
