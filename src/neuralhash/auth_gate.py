"""
neuralhash.auth_gate — Authentication gates for sensitive actions.

Issuance, revocation and claim fulfilment ask a gate first. A gate answers
ok/denied with a human-readable reason; it never touches credentials.

ChallengeResponseGate works like a platform authenticator: the first use
registers a public key for the user, every later use signs a fresh random
challenge with the matching private key.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from nacl.encoding import HexEncoder
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey
from nacl.utils import random as random_bytes

from neuralhash.errors import AuthenticationDenied

logger = logging.getLogger(__name__)

CHALLENGE_SIZE = 32


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    message: str = ""


class AuthGate(ABC):
    """Capability check invoked before a sensitive action."""

    @abstractmethod
    def authenticate(self, user_hint: str) -> AuthResult: ...


def require(gate: Optional[AuthGate], user_hint: str) -> None:
    """Raise AuthenticationDenied unless the gate (if any) lets the user through."""
    if gate is None:
        return
    result = gate.authenticate(user_hint)
    if not result.ok:
        logger.info("Authentication denied for %s: %s", user_hint, result.message)
        raise AuthenticationDenied(result.message or "Authentication failed.")


class AllowAllGate(AuthGate):

    def authenticate(self, user_hint: str) -> AuthResult:
        return AuthResult(True)


class DenyAllGate(AuthGate):

    def __init__(self, message: str = "Authentication is not supported on this device."):
        self.message = message

    def authenticate(self, user_hint: str) -> AuthResult:
        return AuthResult(False, self.message)


# ─── Challenge / response ──────────────────────────────────────────

class AuthenticationCancelled(Exception):
    """Raised by an authenticator when the user cancels or times out."""


class Authenticator(ABC):
    """Holds per-user signing keys (a platform authenticator stand-in)."""

    @abstractmethod
    def register(self, user_hint: str) -> str:
        """Create (or reuse) a key for the user; return the public key hex."""

    @abstractmethod
    def sign(self, user_hint: str, challenge: bytes) -> bytes:
        """Sign a challenge with the user's key."""


class LocalKeyAuthenticator(Authenticator):
    """Software authenticator keeping Ed25519 keys in memory."""

    def __init__(self):
        self._keys: dict[str, SigningKey] = {}

    def register(self, user_hint: str) -> str:
        key = self._keys.setdefault(user_hint, SigningKey.generate())
        return key.verify_key.encode(encoder=HexEncoder).decode()

    def sign(self, user_hint: str, challenge: bytes) -> bytes:
        key = self._keys.get(user_hint)
        if key is None:
            raise AuthenticationCancelled("no key for user")
        return key.sign(challenge).signature


class ChallengeResponseGate(AuthGate):
    """Registers a public key on first use, then verifies signed challenges."""

    def __init__(self, authenticator: Authenticator):
        self.authenticator = authenticator
        self._registered: dict[str, str] = {}

    def is_registered(self, user_hint: str) -> bool:
        return user_hint in self._registered

    def authenticate(self, user_hint: str) -> AuthResult:
        try:
            public_key = self._registered.get(user_hint)
            if public_key is None:
                public_key = self.authenticator.register(user_hint)
                self._registered[user_hint] = public_key

            challenge = random_bytes(CHALLENGE_SIZE)
            signature = self.authenticator.sign(user_hint, challenge)
            VerifyKey(public_key.encode(), encoder=HexEncoder).verify(challenge, signature)
            return AuthResult(True)
        except AuthenticationCancelled:
            return AuthResult(False, "Authentication was cancelled or timed out.")
        except BadSignatureError:
            self._registered.pop(user_hint, None)
            return AuthResult(False, "Authentication profile reset. Please retry.")
        except Exception as e:
            logger.warning("Authenticator error for %s: %s", user_hint, e)
            return AuthResult(False, "Authentication failed.")
