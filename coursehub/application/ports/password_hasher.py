from typing import Protocol


class PasswordHasher(Protocol):
    def hash(self, plaintext: str) -> str:
        ...

    def verify(self, plaintext: str, digest: str) -> bool:
        ...
