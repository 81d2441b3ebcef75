"""Password hashing with bcrypt."""
import bcrypt

# bcrypt only looks at the first 72 bytes of input.
BCRYPT_MAX_BYTES = 72
DEFAULT_ROUNDS = 12


class PasswordHasher:
    """Salted one-way password hashing with a tunable work factor."""

    def __init__(self, rounds: int = DEFAULT_ROUNDS):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        """Hash a password. A fresh salt is generated on every call."""
        if not plaintext or not plaintext.strip():
            raise ValueError("Password must not be empty")
        return bcrypt.hashpw(
            plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES],
            bcrypt.gensalt(rounds=self.rounds),
        ).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Verify a password against its hash."""
        if not plaintext or not hashed:
            return False
        try:
            return bcrypt.checkpw(
                plaintext.encode("utf-8")[:BCRYPT_MAX_BYTES],
                hashed.encode("utf-8"),
            )
        except (ValueError, TypeError):
            return False
