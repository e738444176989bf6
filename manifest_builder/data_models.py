# manifest_builder/data_models.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ManifestFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"


class FileEntry(BaseModel):
    path: str = Field(min_length=1)
    content: str = ""
    model_config = ConfigDict(extra='ignore', frozen=True)


class Manifest(BaseModel):
    files: List[FileEntry]
    notes: Optional[str] = None
    model_config = ConfigDict(extra='ignore', frozen=True)


class AttemptOutcome(str, Enum):
    ACCEPTED = "accepted"
    PROVIDER_ERROR = "provider_error"
    PARSE_ERROR = "parse_error"
    VALIDATION_ERROR = "validation_error"


class ProviderAttempt(BaseModel):
    """One provider invocation. Kept for diagnostics only."""
    provider: str
    ordinal: int
    outcome: AttemptOutcome
    raw_text: Optional[str] = None
    error: Optional[str] = None
    model_config = ConfigDict(frozen=True)


class PipelineResult(BaseModel):
    provider: str
    written_paths: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    attempts: List[ProviderAttempt] = Field(default_factory=list)
    model_config = ConfigDict(frozen=True)
