from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path("data")
    database_url: str | None = None
    # Pool checkout and SQLite lock wait; exceeding it surfaces as 503.
    db_timeout_seconds: float = 10.0
    api_prefix: str = "/api"
    host: str = "127.0.0.1"
    port: int = 4000

    # IMPORTANT: change this in production
    jwt_secret: str = "dev-change-me-please"
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 8

    max_upload_bytes: int = 10 * 1024 * 1024  # 10 MiB
    max_files_per_upload: int = 5
    allowed_upload_extensions: set[str] = {".jpeg", ".jpg", ".png", ".pdf", ".doc", ".docx"}
    max_signature_bytes: int = 2 * 1024 * 1024
    allowed_signature_extensions: set[str] = {".jpeg", ".jpg", ".png"}

    cors_origins: list[str] = ["http://localhost:5173"]

    # Raw storage/driver error text is only ever returned when this is on.
    debug_errors: bool = False
    log_level: str = "INFO"

    vapid_public_key: str | None = None
    vapid_private_key: str | None = None
    vapid_subject: str | None = None

    @property
    def db_url(self) -> str:
        return self.database_url or f"sqlite:///{self.data_dir / 'docflow.sqlite'}"

    @property
    def upload_dir(self) -> Path:
        return self.data_dir / "uploads" / "documents"

    @property
    def signature_dir(self) -> Path:
        return self.data_dir / "uploads" / "signatures"

    model_config = {"env_prefix": "DOCFLOW_"}


settings = Settings()
