import logging

from passlib.context import CryptContext

from ...application.ports.password_hasher import PasswordHasher

logger = logging.getLogger(__name__)


class BcryptPasswordHasher(PasswordHasher):
    def __init__(self, rounds: int = 10):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, plaintext: str) -> str:
        return self.context.hash(plaintext)

    def verify(self, plaintext: str, digest: str) -> bool:
        if not digest:
            return False
        try:
            return self.context.verify(plaintext, digest)
        except ValueError as e:
            # unrecognised or corrupt digest
            logger.error(f"Password hash could not be checked: {e}")
            return False
