# src/auth/services.py
import logging

from fastapi import Request
from jose import JWTError, jwt
from datetime import timedelta
from typing import Optional
from auth.schemas import SessionUser
from config import settings
from database import utcnow

logger = logging.getLogger(__name__)


class AuthService:
    @staticmethod
    def create_access_token(claims: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Sign a session token for the given claims (sub, email, role)."""
        lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return jwt.encode(
            {**claims, "exp": utcnow() + lifetime},
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )

    @staticmethod
    def decode_access_token(token: str) -> Optional[dict]:
        """Claims of a valid, unexpired token, or None."""
        try:
            return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError as e:
            logger.info(f"Rejected session token: {e}")
            return None


class SessionResolver:
    """Maps a request to the authenticated user, if any.

    The token comes from ``Authorization: Bearer`` or, failing that, the
    session cookie. No lookup happens beyond verifying the token itself.
    """

    @staticmethod
    def extract_token(request: Request) -> Optional[str]:
        authorization = request.headers.get("Authorization")
        if authorization:
            scheme, _, credentials = authorization.partition(" ")
            if scheme.lower() == "bearer" and credentials.strip():
                return credentials.strip()
        return request.cookies.get(settings.SESSION_COOKIE_NAME) or None

    @staticmethod
    def current_session(request: Request) -> Optional[SessionUser]:
        token = SessionResolver.extract_token(request)
        if not token:
            return None
        payload = AuthService.decode_access_token(token)
        if payload is None or not payload.get("sub"):
            return None
        return SessionUser(
            id=str(payload["sub"]),
            email=payload.get("email"),
            role=payload.get("role") or "user",
        )

    @staticmethod
    def current_user_id(request: Request) -> Optional[str]:
        session = SessionResolver.current_session(request)
        return session.id if session else None
