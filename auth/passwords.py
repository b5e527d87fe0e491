"""
auth/passwords.py -- bcrypt password hashing with timing equalization.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

The cost factor is injected (Settings.bcrypt_rounds) so tests can run at the
bcrypt minimum of 4 rounds while production pays the full cost.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import bcrypt

# bcrypt only ever reads the first 72 bytes of its input.
PASSWORD_MAX_BYTES = 72


class PasswordHasher:
    """One-way adaptive hashing. A fresh random salt is generated per hash() call."""

    def __init__(self, rounds: int = 10) -> None:
        self.rounds = rounds
        # Timing equalization dummy hash [C1].
        # Computed once per hasher so the first login attempt is not measurably
        # slower than later ones. burn() verifies against it when the account
        # does not exist, so unknown-email and wrong-password cost the same.
        self._dummy_hash = self.hash("accessdesk_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Raises ValueError if the UTF-8 encoding exceeds PASSWORD_MAX_BYTES.
        bcrypt 5 refuses such input and bcrypt 4 silently truncates it, so the
        limit is checked here for both. The API layer rejects the same input
        with a 422 before it reaches the service (api/models.py).
        """
        encoded = plain.encode("utf-8")
        if len(encoded) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes when UTF-8 encoded.")
        return bcrypt.hashpw(encoded, bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        A corrupt or non-bcrypt hash is a mismatch, not an error. So is a
        password over PASSWORD_MAX_BYTES, which hash() never accepted.
        """
        encoded = plain.encode("utf-8")
        if len(encoded) > PASSWORD_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
        except ValueError:
            return False

    def burn(self, plain: str) -> None:
        """Spend one verification's worth of CPU against the dummy hash."""
        self.verify(plain, self._dummy_hash)
