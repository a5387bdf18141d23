"""Models describing uploaded files and the fingerprints remembered about them."""

from datetime import datetime, timezone
from typing import List, Sequence

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    """
    One uploaded file, converted to an inline data URL.

    Attributes:
        name: Original file name.
        type: MIME type reported for the file.
        size: Size in bytes.
        data_url: Self-contained ``data:`` URL holding the file content.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: str
    size: int = Field(..., ge=0)
    data_url: str = Field(..., alias="dataUrl")


class DatasetFingerprint(BaseModel):
    """
    Lightweight metadata about an analyzed file batch.

    Fingerprints feed the adaptive system prompt; they never hold file content.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: str
    file_count: int = Field(..., ge=1, alias="fileCount")
    file_names: List[str] = Field(default_factory=list, alias="fileNames")
    file_types: List[str] = Field(default_factory=list, alias="fileTypes")

    @classmethod
    def from_files(cls, files: Sequence[FileRecord]) -> "DatasetFingerprint":
        return cls(
            timestamp=datetime.now(timezone.utc).isoformat(),
            file_count=len(files),
            file_names=[record.name for record in files],
            file_types=[record.type for record in files],
        )
