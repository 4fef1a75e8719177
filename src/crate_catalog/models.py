"""Pydantic models for CLI input validation."""

from pydantic import BaseModel, Field, field_validator


class VersionInput(BaseModel):
    """Input validation for a pinned release version."""

    version: str = Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=r"^\d+\.\d+\.\d+(?:[-+][0-9A-Za-z.-]+)?$",
        description="Release version (e.g. 0.94.1)",
    )


class TypeLookupInput(BaseModel):
    """Input validation for a catalog lookup."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        pattern=r"^(?:r#)?[A-Za-z_][A-Za-z0-9_]*$",
        description="Unqualified Rust type name",
    )
    kind: str | None = Field(None, description="Restrict to 'struct' or 'enum'")

    @field_validator("name")
    @classmethod
    def strip_raw_prefix(cls, v: str) -> str:
        return v[2:] if v.startswith("r#") else v

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: str | None) -> str | None:
        if v is None:
            return v
        valid_kinds = ["struct", "enum"]
        if v.lower() not in valid_kinds:
            raise ValueError(f"Invalid kind '{v}'. Must be one of: {valid_kinds}")
        return v.lower()
