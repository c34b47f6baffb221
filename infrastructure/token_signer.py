"""
JWT signing and verification for session tokens.

RS256 is used when both key-pair settings are present, HS256 with
JWT_SECRET otherwise. verify() reports an elapsed TTL as TokenExpiredError
and every other failure (bad signature, wrong issuer/audience, malformed
token, wrong token type) as TokenInvalidError. PyJWT checks the signature
before the expiry, so a tampered token is Invalid even when it is also
past its TTL.
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import Any, Optional

import jwt

from config import JWTSettings
from errors import TokenExpiredError, TokenInvalidError
from shared.datetime_utils import utcnow
from shared.generators import generate_token_id


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenSigner:
    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            self._algorithm = "RS256"
            # Support keys provided via env with literal \n sequences
            self._signing_key = settings.jwt_private_key.replace("\\n", "\n")
            self._verifying_key = settings.jwt_public_key.replace("\\n", "\n")
        else:
            if not settings.jwt_secret:
                raise RuntimeError(
                    "JWT_SECRET must be set when RS256 keys are not provided"
                )
            self._algorithm = "HS256"
            self._signing_key = settings.jwt_secret
            self._verifying_key = settings.jwt_secret

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def sign(self, claims: dict[str, Any], ttl: timedelta) -> str:
        """Sign *claims* with issuer/audience/iat/exp/jti filled in."""
        now = utcnow()
        payload = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            # Unique per token so two tokens minted in the same second differ
            "jti": generate_token_id(),
            **claims,
        }
        return jwt.encode(payload, self._signing_key, algorithm=self._algorithm)

    def verify(
        self, token: str, token_type: Optional[TokenType] = None
    ) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                token,
                self._verifying_key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("token expired")
        except jwt.InvalidTokenError:
            raise TokenInvalidError("invalid token")

        if token_type is not None and claims.get("type") != token_type.value:
            raise TokenInvalidError(f"expected a {token_type.value} token")
        return claims
