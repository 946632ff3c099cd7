import logging
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

from ...core.clock import utc_now
from ...exceptions import ConfigurationError
from ...application.ports.token_signer import TokenSigner

logger = logging.getLogger(__name__)


class JwtTokenSigner(TokenSigner):
    def __init__(self, secret: Optional[str], algorithm: str = "HS256"):
        if not secret:
            raise ConfigurationError("JWT_SECRET is not configured")
        self._secret = secret
        self.algorithm = algorithm

    def sign(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        """Create a signed JWT that expires ``ttl`` from now"""
        to_encode = claims.copy()
        now = utc_now()
        to_encode.update({"iat": now, "exp": now + ttl})
        return jwt.encode(to_encode, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[Dict[str, Any]]:
        """Decode and verify JWT token"""
        try:
            return jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"JWT error: {e}")
            return None
