import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import jwt
from passlib.context import CryptContext

DEV_SECRET_KEY = "dev-secret-unsafe"
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


class JWTAuthAdapter:
    """
    Auth adapter: argon2 password hashes via passlib, HS256 access tokens via jose.

    Every token carries a random `jti` so two tokens minted for the same user in
    the same second still hash differently on the logout blacklist.
    """

    def __init__(self, secret_key: str = DEV_SECRET_KEY, algorithm: str = ALGORITHM) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm

    def hash_password(self, password: str) -> str:
        result: str = pwd_context.hash(password)
        return result

    def verify_password(self, plain: str, hashed: str) -> bool:
        result: bool = pwd_context.verify(plain, hashed)
        return result

    def hash_token(self, token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

    def create_token(
        self, user_id: Any, ttl_minutes: int, now_utc: datetime | None = None
    ) -> str:
        issued = now_utc if now_utc is not None else datetime.now(UTC)
        claims = {
            "sub": str(user_id),
            "iat": issued,
            "exp": issued + timedelta(minutes=ttl_minutes),
            "jti": secrets.token_hex(8),
        }
        encoded: str = jwt.encode(claims, self._secret_key, algorithm=self._algorithm)
        return encoded

    def decode_token(self, token: str) -> dict[str, Any] | None:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
            return cast(dict[str, Any], payload)
        except jwt.JWTError:
            return None

    def validate_token(self, token: str) -> Any | None:
        payload = self.decode_token(token)
        return payload.get("sub") if payload else None

    def generate_otp(self, length: int = 6) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(length))

    def generate_reset_token(self) -> str:
        return secrets.token_hex(20)
