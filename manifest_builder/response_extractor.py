# manifest_builder/response_extractor.py
"""
Best-effort isolation of the structured payload inside free-form model output.

The steps are tried in order and the first one that applies wins:

1. a fenced block tagged for the active format (```json, ```yaml / ```yml)
2. any fenced block, minus a leading language tag line
3. JSON only: the span from the earliest '{' to the latest '}'
4. the trimmed raw text

Nothing here raises. When no step finds a payload the text is handed on
unchanged so the parser can fail cleanly. extract_candidates keeps every
step's result, so a fence quoted inside a bare payload (a README's code
block, say) does not hide the payload itself.
"""
import re
from typing import List

from manifest_builder.data_models import ManifestFormat

TAGGED_FENCE_PATTERNS = {
    ManifestFormat.JSON: re.compile(r"```json([\s\S]*?)```", re.IGNORECASE),
    ManifestFormat.YAML: re.compile(r"```ya?ml([\s\S]*?)```", re.IGNORECASE),
}
ANY_FENCE_PATTERN = re.compile(r"```([\s\S]*?)```")
# First line of a generic fence holding only a language tag (or nothing).
LANGUAGE_TAG_LINE = re.compile(r"\A[ \t]*[\w.+-]*[ \t]*\r?\n")

# YAML documents have no outer delimiters, so step 3 only applies to JSON.
OUTER_DELIMITERS = {
    ManifestFormat.JSON: ("{", "}"),
}


def extract_tagged_fence(text: str, manifest_format: ManifestFormat):
    match = TAGGED_FENCE_PATTERNS[manifest_format].search(text)
    if match:
        return match.group(1).strip()
    return None


def extract_any_fence(text: str):
    match = ANY_FENCE_PATTERN.search(text)
    if match:
        return LANGUAGE_TAG_LINE.sub("", match.group(1), count=1).strip()
    return None


def extract_delimited_span(text: str, manifest_format: ManifestFormat):
    delimiters = OUTER_DELIMITERS.get(manifest_format)
    if not delimiters:
        return None
    opening, closing = delimiters
    first = text.find(opening)
    last = text.rfind(closing)
    if first != -1 and last > first:
        return text[first:last + 1]
    return None


def extract_candidates(raw_text: str, manifest_format: ManifestFormat = ManifestFormat.JSON) -> List[str]:
    """
    Every distinct payload the steps find, in step order. The trimmed text is
    always last, so the list is never empty.
    """
    text = raw_text or ""
    candidates: List[str] = []
    for candidate in (
        extract_tagged_fence(text, manifest_format),
        extract_any_fence(text),
        extract_delimited_span(text, manifest_format),
        text.strip(),
    ):
        if candidate is not None and candidate not in candidates:
            candidates.append(candidate)
    return candidates


def extract_payload(raw_text: str, manifest_format: ManifestFormat = ManifestFormat.JSON) -> str:
    """Returns the payload isolated from raw_text by the first applicable step."""
    return extract_candidates(raw_text, manifest_format)[0]
