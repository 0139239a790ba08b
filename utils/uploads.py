"""Transient upload files"""

import logging
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)


def save_upload(content: bytes, upload_dir: Union[str, Path], original_name: str = "") -> Path:
    """Write bytes under a random name, keeping the original suffix"""
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)
    suffix = Path(original_name).suffix.lower() or ".xlsx"
    path = directory / f"{uuid.uuid4().hex}{suffix}"
    path.write_bytes(content)
    return path


def remove_upload(path: Union[str, Path]) -> None:
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not delete upload %s: %s", path, e)


@contextmanager
def transient_upload(path: Union[str, Path]) -> Iterator[Path]:
    """Yield the upload path and delete the file however the block exits"""
    path = Path(path)
    try:
        yield path
    finally:
        remove_upload(path)
