# tests/test_config_utils.py
import pytest
from pathlib import Path
from unittest.mock import MagicMock, patch

import pydantic

from manifest_builder.config_utils import (
    SUPPORTED_SET_PARAMS,
    ULTIMATE_DEFAULTS,
    BuilderConfig,
    build_config,
    coerce_param_value,
    get_config_value,
    list_config,
    load_config_file,
)
from manifest_builder.data_models import ManifestFormat

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Every test starts without any of the builder's environment variables."""
    for p_config in SUPPORTED_SET_PARAMS.values():
        monkeypatch.delenv(p_config["env_var"], raising=False)

@pytest.fixture
def mock_console():
    return MagicMock()

def _build(tmp_path, toml_text=None, overrides=None, console=None):
    config_path = tmp_path / "config.toml"
    if toml_text is not None:
        config_path.write_text(toml_text, encoding="utf-8")
    return build_config(overrides, console, config_path=config_path, use_dotenv=False)

# --- Defaults ---

def test_build_config_defaults(tmp_path):
    config = _build(tmp_path)
    assert config.task == ULTIMATE_DEFAULTS["task"]
    assert config.master_plan_path == Path("docs/MASTER_PLAN.md")
    assert config.output_root == Path(".")
    assert config.manifest_format is ManifestFormat.JSON
    assert config.allow_empty_manifest is False
    assert config.system_prompt_path is None
    assert config.temperature == 0.2
    assert config.openai_model == "gpt-4o-mini"
    assert config.anthropic_model == "claude-3-5-sonnet-latest"
    assert config.anthropic_max_tokens == 4000
    assert config.configured_providers == []

def test_build_config_is_frozen(tmp_path):
    config = _build(tmp_path)
    with pytest.raises(pydantic.ValidationError):
        config.task = "something else"

def test_build_config_loads_dotenv(tmp_path):
    with patch("manifest_builder.config_utils.load_dotenv") as mock_load_dotenv:
        build_config(config_path=tmp_path / "config.toml")
    mock_load_dotenv.assert_called_once()

# --- Credentials and provider order ---

def test_configured_providers_follow_priority(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    config = _build(tmp_path)
    assert config.configured_providers == ["openai", "anthropic"]
    assert config.openai_api_key.get_secret_value() == "sk-test"

def test_configured_providers_single(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    assert _build(tmp_path).configured_providers == ["anthropic"]

@pytest.mark.parametrize("empty_value", ["", "   "])
def test_empty_credential_counts_as_unset(tmp_path, monkeypatch, empty_value):
    monkeypatch.setenv("OPENAI_API_KEY", empty_value)
    config = _build(tmp_path)
    assert config.openai_api_key is None
    assert config.configured_providers == []

def test_credentials_are_not_read_from_toml(tmp_path):
    config = _build(tmp_path, '[providers.openai]\napi_key = "sk-from-file"\nopenai_api_key = "sk-from-file"\n')
    assert config.openai_api_key is None

def test_credentials_are_masked_in_repr(tmp_path, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")
    assert "sk-very-secret" not in repr(_build(tmp_path))

# --- Precedence ---

TOML_TEXT = """
[builder]
task = "Task from toml"
format = "yaml"
allow_empty_manifest = true

[generation]
temperature = 0.7

[providers.openai]
model = "gpt-4o"

[providers.anthropic]
max_tokens = 8000
"""

def test_toml_values_are_read(tmp_path):
    config = _build(tmp_path, TOML_TEXT)
    assert config.task == "Task from toml"
    assert config.manifest_format is ManifestFormat.YAML
    assert config.allow_empty_manifest is True
    assert config.temperature == 0.7
    assert config.openai_model == "gpt-4o"
    assert config.anthropic_max_tokens == 8000

def test_env_beats_toml(tmp_path, monkeypatch):
    monkeypatch.setenv("TASK", "Task from env")
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4.1")
    config = _build(tmp_path, TOML_TEXT)
    assert config.task == "Task from env"
    assert config.openai_model == "gpt-4.1"

def test_override_beats_env(tmp_path, monkeypatch):
    monkeypatch.setenv("TASK", "Task from env")
    monkeypatch.setenv("MANIFEST_FORMAT", "yaml")
    config = _build(tmp_path, TOML_TEXT, overrides={"task": "Task from CLI", "manifest_format": "json"})
    assert config.task == "Task from CLI"
    assert config.manifest_format is ManifestFormat.JSON

def test_env_values_are_coerced(tmp_path, monkeypatch):
    monkeypatch.setenv("ALLOW_EMPTY_MANIFEST", "yes")
    monkeypatch.setenv("MANIFEST_FORMAT", "YAML")
    monkeypatch.setenv("BUILDER_MAX_FILE_SIZE_BYTES", "1024")
    monkeypatch.setenv("BUILDER_OUTPUT_ROOT", str(tmp_path / "out"))
    config = _build(tmp_path)
    assert config.allow_empty_manifest is True
    assert config.manifest_format is ManifestFormat.YAML
    assert config.max_file_size_bytes == 1024
    assert config.output_root == tmp_path / "out"

def test_invalid_env_value_warns_and_falls_through(tmp_path, monkeypatch, mock_console):
    monkeypatch.setenv("BUILDER_TEMPERATURE", "5")
    config = _build(tmp_path, TOML_TEXT, console=mock_console)
    assert config.temperature == 0.7
    printed = " ".join(str(c.args[0]) for c in mock_console.print.call_args_list)
    assert "Invalid value '5' for temperature from BUILDER_TEMPERATURE" in printed
    assert "Temperature must be between 0.0 and 2.0." in printed

def test_invalid_value_everywhere_falls_back_to_default(tmp_path, monkeypatch, mock_console):
    monkeypatch.setenv("MANIFEST_FORMAT", "xml")
    config = _build(tmp_path, '[builder]\nformat = "toml"\n', console=mock_console)
    assert config.manifest_format is ManifestFormat.JSON
    assert mock_console.print.call_count == 2

def test_malformed_toml_warns_and_uses_defaults(tmp_path, mock_console):
    config = _build(tmp_path, "[builder\ntask = ", console=mock_console)
    assert config.task == ULTIMATE_DEFAULTS["task"]
    warning = mock_console.print.call_args_list[0].args[0]
    assert "Could not load or parse" in warning

def test_load_config_file_missing(tmp_path):
    assert load_config_file(tmp_path / "nope.toml") == {}

# --- get_config_value / coerce_param_value ---

def test_get_config_value_unknown_param():
    with pytest.raises(KeyError):
        get_config_value("unknown_param", {})

def test_get_config_value_masks_invalid_secret(mock_console):
    # Secrets have no type, so force a failure through an override that cannot be coerced
    with patch("manifest_builder.config_utils.coerce_param_value", side_effect=ValueError("bad")):
        assert get_config_value("openai_api_key", {"openai_api_key": "sk-leak"}, console_obj=mock_console) is None
    warning = mock_console.print.call_args.args[0]
    assert "***" in warning
    assert "sk-leak" not in warning

@pytest.mark.parametrize("raw,expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False), (False, False)])
def test_coerce_bool(raw, expected):
    assert coerce_param_value("allow_empty_manifest", raw) is expected

def test_coerce_bool_invalid():
    with pytest.raises(ValueError, match="Expected a boolean"):
        coerce_param_value("debug", "maybe")

@pytest.mark.parametrize("raw", ["0", "-5", "abc", True])
def test_coerce_int_invalid(raw):
    with pytest.raises(ValueError):
        coerce_param_value("max_file_size_bytes", raw)

@pytest.mark.parametrize("raw", ["-0.1", "2.5", "warm"])
def test_coerce_float_invalid(raw):
    with pytest.raises(ValueError):
        coerce_param_value("temperature", raw)

def test_coerce_allowed_values():
    assert coerce_param_value("manifest_format", " Yaml ") == "yaml"
    with pytest.raises(ValueError, match="Allowed values: json, yaml."):
        coerce_param_value("manifest_format", "xml")

# --- list_config ---

def test_list_config_masks_secrets(tmp_path, monkeypatch, mock_console):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-very-secret")
    list_config(_build(tmp_path), mock_console)
    printed = [c.args[0] for c in mock_console.print.call_args_list]
    assert "  - openai_api_key: set" in printed
    assert "  - anthropic_api_key: not set" in printed
    assert "  - openai_model: gpt-4o-mini" in printed
    assert not any("sk-very-secret" in line for line in printed)

def test_builder_config_direct_construction():
    config = BuilderConfig(task="t", master_plan_path="plan.md", output_root="out", openai_api_key="sk")
    assert config.master_plan_path == Path("plan.md")
    assert config.configured_providers == ["openai"]
