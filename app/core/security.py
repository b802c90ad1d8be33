"""
Password hashing.

The stored digest is opaque to the rest of the application: only
``PasswordHasher`` produces and checks it.
"""
from passlib.context import CryptContext

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class PasswordHasher:
    """Adaptive one-way password hashing backed by passlib."""

    def __init__(self, context: CryptContext | None = None):
        self.context = context or pwd_context

    def hash(self, plain_password: str) -> str:
        """
        Hash password.

        Args:
            plain_password: Plain text password

        Returns:
            Salted bcrypt digest
        """
        return self.context.hash(plain_password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify password against hash.

        Unknown or malformed digests never match.
        """
        if not hashed_password:
            return False
        try:
            return self.context.verify(plain_password, hashed_password)
        except ValueError:
            return False


def get_password_hash(password: str) -> str:
    return PasswordHasher().hash(password)


PASSWORD_MIN_LENGTH = 8
PASSWORD_SPECIAL_CHARS = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def validate_password_strength(password: str) -> str:
    """
    Validate password meets security requirements.

    Args:
        password: Candidate password

    Returns:
        The password, unchanged

    Raises:
        ValueError: If password doesn't meet requirements
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")

    if any(c.isspace() for c in password):
        raise ValueError("Password must not contain whitespace")

    # Check for at least one uppercase letter
    if not any(c.isupper() for c in password):
        raise ValueError("Password must contain at least one uppercase letter")

    # Check for at least one lowercase letter
    if not any(c.islower() for c in password):
        raise ValueError("Password must contain at least one lowercase letter")

    # Check for at least one digit
    if not any(c.isdigit() for c in password):
        raise ValueError("Password must contain at least one number")

    # Check for at least one special character
    if not any(c in PASSWORD_SPECIAL_CHARS for c in password):
        raise ValueError("Password must contain at least one special character")

    return password
