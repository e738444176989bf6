# tests/test_response_extractor.py
import json
import pytest

from manifest_builder.data_models import ManifestFormat
from manifest_builder.response_extractor import extract_candidates, extract_payload

PAYLOAD = '{"files":[{"path":"app/logout.txt","content":"logout"}],"notes":"done"}'

# --- JSON ---

def test_tagged_fence_with_surrounding_prose():
    raw = f"Here is the manifest you asked for:\n```json\n{PAYLOAD}\n```\nLet me know if you need more."
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_tagged_fence_is_case_insensitive():
    raw = f"```JSON\n{PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_tagged_fence_wins_over_earlier_generic_fence():
    raw = f"Example shell:\n```\nnpm install\n```\nManifest:\n```json\n{PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_generic_fence():
    raw = f"```\n{PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_generic_fence_drops_other_language_tag():
    raw = f"```javascript\n{PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_generic_fence_on_one_line_is_kept_whole():
    raw = f"```{PAYLOAD}```"
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_brace_span_without_fences():
    raw = f"Sure! {PAYLOAD} Hope this helps."
    assert extract_payload(raw, ManifestFormat.JSON) == PAYLOAD

def test_brace_span_runs_from_first_open_to_last_close():
    raw = 'prefix {"a": {"b": 1}} middle {"c": 2} suffix'
    assert extract_payload(raw, ManifestFormat.JSON) == '{"a": {"b": 1}} middle {"c": 2}'

@pytest.mark.parametrize("payload", [PAYLOAD, f"  \n{PAYLOAD}\n\n", '{"files": []}'])
def test_bare_payload_is_returned_trimmed(payload):
    """No fences: extraction is a no-op apart from trimming."""
    assert extract_payload(payload, ManifestFormat.JSON) == payload.strip()

@pytest.mark.parametrize("raw", ["I could not do that.", "  only an opening { brace  ", "} reversed {"])
def test_nothing_to_extract_returns_trimmed_text(raw):
    assert extract_payload(raw, ManifestFormat.JSON) == raw.strip()

def test_none_and_empty_input():
    assert extract_payload(None, ManifestFormat.JSON) == ""
    assert extract_payload("", ManifestFormat.JSON) == ""

def test_default_format_is_json():
    assert extract_payload(f"```json\n{PAYLOAD}\n```") == PAYLOAD

# --- YAML ---

YAML_PAYLOAD = "files:\n  - path: app/logout.txt\n    content: logout\nnotes: done"

@pytest.mark.parametrize("tag", ["yaml", "yml", "YAML"])
def test_yaml_tagged_fence(tag):
    raw = f"Here you go:\n```{tag}\n{YAML_PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.YAML) == YAML_PAYLOAD

def test_yaml_ignores_json_tag_preference():
    """For YAML a ```json fence is only a generic fence."""
    raw = "```json\nfiles: []\n```"
    assert extract_payload(raw, ManifestFormat.YAML) == "files: []"

def test_yaml_generic_fence():
    raw = f"```\n{YAML_PAYLOAD}\n```"
    assert extract_payload(raw, ManifestFormat.YAML) == YAML_PAYLOAD

def test_yaml_has_no_brace_step():
    """YAML has no outer delimiters; braces inside prose are not clipped."""
    raw = "Result {see below}:\nfiles: []\n"
    assert extract_payload(raw, ManifestFormat.YAML) == raw.strip()

def test_yaml_bare_payload_is_returned_trimmed():
    assert extract_payload(f"\n{YAML_PAYLOAD}\n", ManifestFormat.YAML) == YAML_PAYLOAD

# --- extract_candidates ---

def test_candidates_follow_step_order():
    raw = f"Intro {{x}}\n```\n{PAYLOAD}\n```"
    assert extract_candidates(raw, ManifestFormat.JSON) == [PAYLOAD, raw[raw.index("{"):raw.rindex("}") + 1], raw.strip()]

def test_candidates_keep_bare_payload_behind_inner_fence():
    """A fence inside a file's content is tried first, but the whole payload is still offered."""
    raw = json.dumps({"files": [{"path": "README.md", "content": "# App\n```\nnpm i\n```\n"}]})
    candidates = extract_candidates(raw, ManifestFormat.JSON)
    assert candidates[0] != raw
    assert raw in candidates

def test_candidates_are_distinct_and_never_empty():
    assert extract_candidates(PAYLOAD, ManifestFormat.JSON) == [PAYLOAD]
    assert extract_candidates(None, ManifestFormat.JSON) == [""]
