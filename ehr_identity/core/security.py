"""
Core security utilities for credential issuance and password handling.

The TokenIssuer signs and verifies bearer credentials. Verification is a pure
function of the signature and the wall clock; whether the user behind a valid
token is still allowed in is decided by the authentication gate.
"""
import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from ..config import Settings, settings
from ..auth.exceptions import InvalidTokenException, TokenExpiredException
from ..auth.models import UserRole

# Set up logging
logger = logging.getLogger(__name__)

SESSION_TOKEN_TYPE = "session"
REFRESH_TOKEN_TYPE = "refresh"

# Password hashing context
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.password_hash_rounds,
)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Hashed password
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        bool: True if password matches hash
    """
    return pwd_context.verify(plain_password, hashed_password)


def generate_verification_code() -> str:
    """Six-digit numeric one-time code, never starting with zero."""
    return str(100000 + secrets.randbelow(900000))


def generate_completion_token() -> str:
    """High-entropy (192 bit) token handed to the applicant after approval."""
    return secrets.token_hex(24)


def hash_token(token: str) -> str:
    """
    Hash a token for secure storage.

    Args:
        token: Token to hash

    Returns:
        str: Hex SHA-256 digest
    """
    return hashlib.sha256(token.encode()).hexdigest()


def verify_token_hash(token: Optional[str], hashed_token: Optional[str]) -> bool:
    """
    Verify a token against a stored hash in constant time.

    Returns False when either side is missing.
    """
    if not token or not hashed_token:
        return False
    return hmac.compare_digest(hash_token(token), hashed_token)


def codes_match(supplied: Optional[str], expected: Optional[str]) -> bool:
    """Constant time comparison of one-time codes."""
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset on round trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_expired(expiry_time: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Check if an expiry has passed. A missing expiry counts as expired.

    Args:
        expiry_time: Expiration time
        now: Reference time (defaults to the current UTC time)

    Returns:
        bool: True if now is later than the expiry
    """
    if expiry_time is None:
        return True
    return (now or utcnow()) > as_utc(expiry_time)


def expiry_after(hours: float) -> datetime:
    """Expiration time the given number of hours from now."""
    return utcnow() + timedelta(hours=hours)


@dataclass(frozen=True)
class TokenClaims:
    """Identity asserted by a verified session token."""
    user_id: int
    email: str
    role: UserRole
    expires_at: datetime


class TokenIssuer:
    """
    Issues and verifies session and refresh credentials.

    Session and refresh tokens are signed with different secrets and carry a
    ``type`` claim, so one can never be presented in place of the other.
    """

    def __init__(
        self,
        secret_key: str,
        refresh_secret_key: str,
        algorithm: str = "HS256",
        session_ttl: timedelta = timedelta(hours=24),
        refresh_ttl: timedelta = timedelta(days=7),
    ):
        if secret_key == refresh_secret_key:
            logger.warning("Session and refresh tokens share a signing secret")
        self._secret_key = secret_key
        self._refresh_secret_key = refresh_secret_key
        self._algorithm = algorithm
        self.session_ttl = session_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenIssuer":
        return cls(
            secret_key=config.secret_key,
            refresh_secret_key=config.refresh_secret_key,
            algorithm=config.algorithm,
            session_ttl=timedelta(hours=config.session_token_expire_hours),
            refresh_ttl=timedelta(days=config.refresh_token_expire_days),
        )

    def _encode(self, claims: dict, secret: str, ttl: timedelta) -> Tuple[str, datetime]:
        issued_at = utcnow()
        expires_at = issued_at + ttl
        to_encode = {**claims, "iat": issued_at, "exp": expires_at}
        return jwt.encode(to_encode, secret, algorithm=self._algorithm), expires_at

    def _decode(self, token: str, secret: str, token_type: str) -> dict:
        try:
            payload = jwt.decode(token, secret, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise TokenExpiredException()
        except JWTError as e:
            logger.debug(f"Token verification failed: {str(e)}")
            raise InvalidTokenException()

        if payload.get("type") != token_type:
            logger.debug(f"Token type mismatch: expected {token_type}, got {payload.get('type')}")
            raise InvalidTokenException()
        return payload

    def issue_session(self, user_id: int, email: str, role: UserRole) -> Tuple[str, datetime]:
        """
        Create a signed session token.

        Returns:
            Tuple of (token, expires_at)
        """
        claims = {
            "user_id": user_id,
            "email": email,
            "role": UserRole(role).value,
            "type": SESSION_TOKEN_TYPE,
        }
        return self._encode(claims, self._secret_key, self.session_ttl)

    def verify_session(self, token: str) -> TokenClaims:
        """
        Verify a session token.

        Raises:
            TokenExpiredException: The signature is valid but the token expired
            InvalidTokenException: Anything else wrong with the token
        """
        payload = self._decode(token, self._secret_key, SESSION_TOKEN_TYPE)
        try:
            return TokenClaims(
                user_id=int(payload["user_id"]),
                email=payload["email"],
                role=UserRole(payload["role"]),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenException()

    def issue_refresh(self, user_id: int) -> Tuple[str, datetime]:
        """
        Create a refresh token. It can only be exchanged for a new session token.

        Returns:
            Tuple of (token, expires_at)
        """
        claims = {"user_id": user_id, "type": REFRESH_TOKEN_TYPE}
        return self._encode(claims, self._refresh_secret_key, self.refresh_ttl)

    def verify_refresh(self, token: str) -> int:
        """
        Verify a refresh token and return the user id it was issued to.

        Raises:
            TokenExpiredException / InvalidTokenException as verify_session
        """
        payload = self._decode(token, self._refresh_secret_key, REFRESH_TOKEN_TYPE)
        try:
            return int(payload["user_id"])
        except (KeyError, TypeError, ValueError):
            raise InvalidTokenException()


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    """Process-wide issuer, built once from settings at first use."""
    return TokenIssuer.from_settings(settings)
