"""
Token service — issues and verifies signed, time-limited session tokens.

Tokens are stateless JWTs: validity is decided purely by signature and
expiry, there is no server-side session or revocation list.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from app.schemas.auth import TokenClaims

log = logging.getLogger(__name__)

# Failure reasons reported by TokenService.verify
TOKEN_EXPIRED = "expired"
TOKEN_INVALID = "invalid"
TOKEN_MALFORMED = "malformed"


@dataclass(frozen=True)
class TokenVerification:
    """Outcome of ``TokenService.verify``: either ``claims`` or ``error`` is set."""

    claims: Optional[TokenClaims] = None
    error: Optional[str] = None
    expires_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.claims is not None


class TokenService:
    """Signs and verifies identity claims with a process-wide key."""

    def __init__(self, secret_key: str, algorithm: str = "HS256", expire_minutes: int = 60):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.default_ttl = timedelta(minutes=expire_minutes)

    @classmethod
    def from_settings(cls, settings) -> "TokenService":
        return cls(
            secret_key=settings.JWT_SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            expire_minutes=settings.JWT_EXPIRE_MINUTES,
        )

    def issue(self, claims: TokenClaims, ttl: Optional[timedelta] = None) -> str:
        """Sign ``claims`` plus ``iat``/``exp``; ``ttl`` defaults to the configured lifetime."""
        now = datetime.now(timezone.utc)
        payload = claims.model_dump(mode="json")
        payload.update({
            "iat": now,
            "exp": now + (ttl if ttl is not None else self.default_ttl),
        })
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenVerification:
        """Decode ``token``. Never raises on bad input; check ``.ok`` / ``.error``."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            return TokenVerification(error=TOKEN_EXPIRED)
        except JWTError as exc:
            log.debug("Token rejected: %s", exc)
            return TokenVerification(error=TOKEN_INVALID)

        if "exp" not in payload:
            return TokenVerification(error=TOKEN_MALFORMED)
        try:
            claims = TokenClaims.model_validate(payload)
        except ValidationError:
            return TokenVerification(error=TOKEN_MALFORMED)

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        return TokenVerification(claims=claims, expires_at=expires_at)
