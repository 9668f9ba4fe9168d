from pathlib import Path

from meshgen.config import Settings


def ensure_data_dirs(settings: Settings) -> None:
    """Create upload and output directories if they don't exist."""
    settings.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    settings.OUTPUT_DIR.mkdir(parents=True, exist_ok=True)


def save_upload(filename: str | None, content: bytes, upload_dir: Path) -> Path:
    upload_dir.mkdir(parents=True, exist_ok=True)
    # Keep only the basename of whatever the client sent
    name = Path(filename or "").name or "image"
    file_path = upload_dir / name
    file_path.write_bytes(content)
    return file_path
