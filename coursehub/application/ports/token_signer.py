from datetime import timedelta
from typing import Any, Dict, Optional, Protocol


class TokenSigner(Protocol):
    def sign(self, claims: Dict[str, Any], ttl: timedelta) -> str:
        ...

    def verify(self, token: str) -> Optional[Dict[str, Any]]:
        ...
