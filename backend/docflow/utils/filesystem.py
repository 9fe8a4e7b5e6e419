import uuid
from pathlib import Path

from docflow.config import settings


def ensure_upload_dirs() -> tuple[Path, Path]:
    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    settings.signature_dir.mkdir(parents=True, exist_ok=True)
    return settings.upload_dir, settings.signature_dir


def sanitize_filename(name: str) -> str:
    keep = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._-")
    return "".join(c if c in keep else "_" for c in name)


def file_extension(name: str) -> str:
    return Path(name or "").suffix.lower()


def stored_name_for(original: str, prefix: str = "") -> str:
    """Unique on-disk name that keeps the original extension."""
    return f"{prefix}{uuid.uuid4().hex}{file_extension(original)}"
