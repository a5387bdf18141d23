"""Validation and inline encoding of files picked or dropped by the user."""

from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from src.datasight.config import ALLOWED_FILE_TYPES, MAX_FILE_SIZE
from src.datasight.models.dataset import FileRecord
from src.datasight.models.exceptions import FileValidationError

logger = logging.getLogger(__name__)

# Types mimetypes does not know on every platform.
_EXTRA_TYPES = {
    ".csv": "text/csv",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


@dataclass
class IngestionResult:
    records: List[FileRecord] = field(default_factory=list)
    rejected: List[FileValidationError] = field(default_factory=list)


def guess_mime_type(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def to_data_url(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def validate_file(
    name: str,
    mime_type: str,
    size: int,
    *,
    max_size: int = MAX_FILE_SIZE,
    allowed_types: Sequence[str] = ALLOWED_FILE_TYPES,
) -> None:
    """
    Raises:
        FileValidationError: If the file is too large or its type is not supported.
    """
    if size > max_size:
        raise FileValidationError(
            name,
            f"exceeds the maximum size limit of {max_size / 1024 / 1024:g}MB",
        )
    if mime_type not in allowed_types:
        raise FileValidationError(name, f"file type {mime_type} is not supported")


def ingest_paths(
    paths: Iterable[Union[str, Path]],
    *,
    max_size: int = MAX_FILE_SIZE,
    allowed_types: Optional[Sequence[str]] = None,
) -> IngestionResult:
    """
    Validate each path and convert the accepted ones to ``FileRecord`` objects.

    Files are checked for size and type before their content is read.
    Rejections are collected rather than raised so one bad file does not
    block the rest of the batch.
    """
    allowed = tuple(allowed_types) if allowed_types is not None else ALLOWED_FILE_TYPES
    result = IngestionResult()
    for raw_path in paths:
        path = Path(raw_path)
        mime_type = guess_mime_type(path)
        try:
            size = path.stat().st_size
            validate_file(path.name, mime_type, size, max_size=max_size, allowed_types=allowed)
            content = path.read_bytes()
        except FileValidationError as exc:
            logger.warning("Rejected upload %s", exc)
            result.rejected.append(exc)
            continue
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            result.rejected.append(FileValidationError(path.name, f"could not be read ({exc.strerror or exc})"))
            continue

        result.records.append(
            FileRecord(name=path.name, type=mime_type, size=size, data_url=to_data_url(content, mime_type))
        )

    logger.info("Ingested %d file(s), rejected %d", len(result.records), len(result.rejected))
    return result
