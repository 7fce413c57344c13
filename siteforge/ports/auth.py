from typing import Any, Protocol


class AuthAdapterPort(Protocol):
    def hash_password(self, password: str) -> str: ...
    def verify_password(self, plain: str, hashed: str) -> bool: ...
    def hash_token(self, token: str) -> str: ...
    def create_token(self, user_id: Any, ttl_minutes: int) -> str: ...
    def validate_token(self, token: str) -> Any | None: ...
    def generate_otp(self, length: int = 6) -> str: ...
    def generate_reset_token(self) -> str: ...
