"""Data models for grounding documents.

Field names follow the backend's camelCase wire format through aliases.
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Human-readable size using 1024 steps: 1536 -> '1.5 KB'."""
    if size_bytes <= 0:
        return "0 Bytes"

    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    return f"{round(size, 2):g} {_SIZE_UNITS[unit]}"


class Asset(BaseModel):
    """An uploaded document available for grounding.

    Every field is assigned by the server; assets are never synthesized
    locally.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    original_name: str = Field(alias="originalName")
    mime_type: str = Field(
        default="application/octet-stream",
        validation_alias=AliasChoices("mimeType", "mimetype"),
        serialization_alias="mimeType",
    )
    size_bytes: int = Field(
        default=0,
        validation_alias=AliasChoices("sizeBytes", "size"),
        serialization_alias="sizeBytes",
    )
    formatted_size: str = Field(default="", alias="formattedSize")
    uploaded_at: datetime | None = Field(default=None, alias="uploadedAt")

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> str:
        return str(value)

    @property
    def display_size(self) -> str:
        return self.formatted_size or format_size(self.size_bytes)


class AssetStats(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_files: int = Field(default=0, alias="totalFiles")
    total_size: str = Field(default="0 Bytes", alias="totalSize")


class AssetListing(BaseModel):
    """Response of the file listing route."""

    model_config = ConfigDict(frozen=True)

    files: list[Asset] = Field(default_factory=list)
    stats: AssetStats | None = None

    @field_validator("files", mode="before")
    @classmethod
    def _files_default(cls, value: object) -> object:
        return [] if value is None else value

    def summary(self) -> AssetStats:
        """Server stats, or stats computed from the files when absent."""
        if self.stats is not None:
            return self.stats
        return AssetStats(
            total_files=len(self.files),
            total_size=format_size(sum(f.size_bytes for f in self.files)),
        )
