# manifest_builder/manifest_validator.py
from typing import Any, Dict, List

import pydantic

from manifest_builder.config_utils import NOTES_FILENAME, PROVIDER_PRIORITY, RAW_OUTPUT_FILENAME_TEMPLATE
from manifest_builder.data_models import Manifest
from manifest_builder.errors import ValidationError
from manifest_builder.file_utils import normalize_relative_path

# Diagnostic artifacts written next to the manifest files.
RESERVED_PATHS = {NOTES_FILENAME} | {RAW_OUTPUT_FILENAME_TEMPLATE.format(provider=p) for p in PROVIDER_PRIORITY}


def _check_encodable(index: int, field: str, value: str):
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(f"files[{index}]: '{field}' is not valid UTF-8 text ({e.reason}).") from e


def _validate_entry(index: int, item: Any) -> Dict[str, str]:
    if not isinstance(item, dict):
        raise ValidationError(f"files[{index}] must be a mapping with 'path' and 'content', got {type(item).__name__}.")

    path = item.get("path")
    if not isinstance(path, str) or not path.strip():
        raise ValidationError(f"files[{index}] has no 'path'.")
    _check_encodable(index, "path", path)
    try:
        normalized_path = normalize_relative_path(path)
    except ValueError as e:
        raise ValidationError(f"files[{index}]: {e}") from e
    if normalized_path in RESERVED_PATHS:
        raise ValidationError(f"files[{index}]: '{normalized_path}' is reserved for run diagnostics.")

    # A missing or null content is an intentionally empty file.
    content = item.get("content")
    if content is None:
        content = ""
    if not isinstance(content, str):
        raise ValidationError(f"files[{index}] ('{path}'): 'content' must be a string, got {type(content).__name__}.")
    _check_encodable(index, "content", content)
    return {"path": normalized_path, "content": content}


def validate_manifest(data: Any, allow_empty: bool = False) -> Manifest:
    """
    Checks the parsed payload before anything touches the filesystem and
    returns the typed Manifest with normalized paths.

    Rejects (ValidationError) a payload without a 'files' list, entries without a
    non-empty path, paths that are absolute, escape the project root or name a
    diagnostic artifact, text that cannot be written as UTF-8 and, unless
    allow_empty is set, an empty 'files' list.
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Manifest must be a mapping, got {type(data).__name__}.")
    if data.get("files") is None:
        raise ValidationError("Manifest has no 'files' field.")

    files = data["files"]
    if not isinstance(files, list):
        raise ValidationError(f"'files' must be a list, got {type(files).__name__}.")
    if not files and not allow_empty:
        raise ValidationError("'files' is empty.")

    entries: List[Dict[str, str]] = [_validate_entry(i, item) for i, item in enumerate(files)]

    notes = data.get("notes")
    if notes is not None and not isinstance(notes, str):
        notes = str(notes)

    try:
        return Manifest(files=entries, notes=notes)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Manifest does not match the expected schema: {e}") from e
