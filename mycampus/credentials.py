"""
Credential verification.

The service never compares passwords itself; it asks a verifier.
PasslibVerifier (default) stores a salted hash, PlainVerifier keeps the
old exact-match behaviour for fixtures and demo data.
"""

from __future__ import annotations

from typing import Protocol

from passlib.context import CryptContext


class CredentialVerifier(Protocol):
    def hash(self, secret: str) -> str: ...

    def verify(self, secret: str, stored: str) -> bool: ...


class PasslibVerifier:
    def __init__(self, schemes: list[str] | None = None) -> None:
        self.context = CryptContext(schemes=schemes or ["pbkdf2_sha256"], deprecated="auto")

    def hash(self, secret: str) -> str:
        return self.context.hash(secret)

    def verify(self, secret: str, stored: str) -> bool:
        # passlib raises on values that are not a known hash (e.g. legacy plaintext)
        try:
            return self.context.verify(secret, stored)
        except ValueError:
            return False


class PlainVerifier:
    def hash(self, secret: str) -> str:
        return secret

    def verify(self, secret: str, stored: str) -> bool:
        return secret == stored
