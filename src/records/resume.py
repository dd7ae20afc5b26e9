"""Résumé attachment checks run before a record is submitted."""

from pathlib import Path

MAX_RESUME_BYTES = 5 * 1024 * 1024
_PDF_MAGIC = b"%PDF"


def validate_resume(path: str | Path) -> Path:
    """Return the résumé path if it is an acceptable PDF.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not a PDF or is larger than 5MB.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        msg = f"Resume file not found: {path}"
        raise FileNotFoundError(msg)

    if path.suffix.lower() != ".pdf":
        msg = "Only PDF files are allowed"
        raise ValueError(msg)
    with path.open("rb") as fh:
        if fh.read(len(_PDF_MAGIC)) != _PDF_MAGIC:
            msg = "Only PDF files are allowed"
            raise ValueError(msg)

    if path.stat().st_size > MAX_RESUME_BYTES:
        msg = "File size must be less than 5MB"
        raise ValueError(msg)
    return path
