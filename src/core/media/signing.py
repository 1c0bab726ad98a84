"""
HMAC signing for locally served asset URLs.

Mirrors object-store presigned URLs: the signed message binds the key to
its expiry, so a signature cannot be replayed for another key or a later
deadline.
"""

import hashlib
import hmac
import time
from typing import Callable, Optional, Union


class SignedURLCodec:
    """HMAC-SHA256 signer/verifier for "<key>:<expires>" messages."""

    def __init__(self, secret: str, clock: Callable[[], float] = time.time) -> None:
        if not secret:
            raise ValueError("Signing secret is required")
        self._secret = secret.encode("utf-8")
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def sign(self, message: str) -> str:
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign_key(self, key: str, expires: int) -> str:
        return self.sign(self.message_for(key, expires))

    @staticmethod
    def message_for(key: str, expires: int) -> str:
        return f"{key}:{expires}"

    def verify(
        self,
        key: str,
        expires: Union[str, int, None],
        signature: Optional[str],
    ) -> bool:
        """
        Check a signature and its deadline. Never raises.

        Fails on an unparseable expiry, a deadline in the past, or a
        signature mismatch (constant-time compare).
        """
        if signature is None or expires is None:
            return False
        try:
            expires_at = int(expires)
        except (TypeError, ValueError):
            return False

        if self.now() > expires_at:
            return False

        expected = self.sign_key(key, expires_at)
        return hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8"))
