import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ...core.clock import utc_now
from ..ports.token_signer import TokenSigner
from ..ports.user_repo import AccountRecord

logger = logging.getLogger(__name__)


class SessionPolicy(str, Enum):
    STANDARD = "standard"
    POST_VERIFICATION = "post_verification"


@dataclass(frozen=True)
class IssuedSession:
    token: str = ""
    policy: SessionPolicy = SessionPolicy.STANDARD
    expires_at: Optional[datetime] = None
    max_age: int = 0


class AuthSessionIssuer:
    """Mints signed, time-bound session tokens for accounts.

    Two named policies exist: a standard session handed out on registration
    and login, and a longer post-verification session whose claims also carry
    the account's role, name and verification flag.
    """

    def __init__(
        self,
        signer: TokenSigner,
        standard_ttl: timedelta = timedelta(days=7),
        verified_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utc_now,
    ):
        self.signer = signer
        self.ttls = {
            SessionPolicy.STANDARD: standard_ttl,
            SessionPolicy.POST_VERIFICATION: verified_ttl,
        }
        self.clock = clock

    def ttl_for(self, policy: SessionPolicy) -> timedelta:
        return self.ttls[policy]

    def claims_for(self, account: AccountRecord, policy: SessionPolicy) -> Dict[str, Any]:
        claims: Dict[str, Any] = {"sub": account.id}
        if policy is SessionPolicy.POST_VERIFICATION:
            claims.update({"role": account.role, "name": account.name, "verified": account.is_verified})
        return claims

    def issue(self, account: AccountRecord, policy: SessionPolicy = SessionPolicy.STANDARD) -> IssuedSession:
        ttl = self.ttl_for(policy)
        token = self.signer.sign(self.claims_for(account, policy), ttl)
        logger.info(f"Issued {policy.value} session for user {account.id}")
        return IssuedSession(
            token=token,
            policy=policy,
            expires_at=self.clock() + ttl,
            max_age=int(ttl.total_seconds()),
        )

    def decode(self, token: str) -> Optional[Dict[str, Any]]:
        if not token:
            return None
        return self.signer.verify(token)

    def account_id_from(self, token: str) -> Optional[str]:
        claims = self.decode(token)
        if not claims:
            return None
        return claims.get("sub")
