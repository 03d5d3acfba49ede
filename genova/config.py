from cryptography.fernet import Fernet
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # On a phone, localhost is the device itself: point this at the dev machine's LAN address.
    api_base_url: str = "http://localhost:5001/api"
    request_timeout_seconds: float = 30.0
    token_store_path: str = ".genova/session.json"
    encryption_key: str = ""  # Fernet key; empty stores tokens in plaintext (dev only)
    app_env: str = "development"  # "production" requires ENCRYPTION_KEY
    # Access tokens live 15 minutes; refresh one minute before expiry
    token_refresh_interval_minutes: int = 14
    debug: bool = False
    log_level: str = "INFO"

    @property
    def base_url(self) -> str:
        """API base URL without trailing slash."""
        return self.api_base_url.rstrip("/")

    def validate_storage_config(self) -> None:
        """Raise if ENCRYPTION_KEY is malformed, or missing in production (tokens would be stored unencrypted)."""
        key = self.encryption_key.strip()
        if key:
            try:
                Fernet(key.encode())
            except ValueError as e:
                raise RuntimeError("ENCRYPTION_KEY is not a valid Fernet key") from e
        elif self.app_env == "production":
            raise RuntimeError("ENCRYPTION_KEY is required in production to store session tokens")


settings = Settings()
