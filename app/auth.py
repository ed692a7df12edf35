import logging

from fastapi import HTTPException, Request
from jose import JWTError, jwt

from core.config import ALLOW_UNVERIFIED_JWT_DEV, AUTH_JWT_SECRET, ENV

logger = logging.getLogger("app.auth")


def decode_token(token: str) -> dict:
    """
    HS256-verified claims when AUTH_JWT_SECRET is set. Without a secret,
    unverified claims are accepted only outside production and only when
    ALLOW_UNVERIFIED_JWT_DEV is on.
    """
    try:
        if AUTH_JWT_SECRET:
            return jwt.decode(token, AUTH_JWT_SECRET, algorithms=["HS256"])
        if ENV == "production":
            raise HTTPException(500, "AUTH_JWT_SECRET is not configured")
        if not ALLOW_UNVERIFIED_JWT_DEV:
            raise HTTPException(
                401,
                "Token verification is not configured; set AUTH_JWT_SECRET or ALLOW_UNVERIFIED_JWT_DEV=true",
            )
        claims = jwt.get_unverified_claims(token)
        logger.warning("accepting unverified token claims | env=%s", ENV)
        return claims
    except JWTError:
        raise HTTPException(401, "Invalid token")


def get_bearer_token(request: Request) -> str:
    scheme, _, token = str(request.headers.get("Authorization") or "").partition(" ")
    if scheme != "Bearer" or not token.strip():
        raise HTTPException(401, "Unauthorized")
    return token.strip()


def get_user_id(request: Request) -> str:
    subject = (decode_token(get_bearer_token(request)) or {}).get("sub")
    if not subject:
        raise HTTPException(401, "Invalid token")
    return str(subject)
