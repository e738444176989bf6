# manifest_builder/config_utils.py
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import toml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, SecretStr

from manifest_builder.data_models import ManifestFormat

# --- Ultimate Fallback Defaults ---
# Used when no CLI override, environment variable or config.toml value is set.
ULTIMATE_DEFAULTS: Dict[str, Any] = {
    "task": "Scaffold the application",
    "master_plan_path": "docs/MASTER_PLAN.md",
    "output_root": ".",
    "manifest_format": "json",
    "allow_empty_manifest": False,
    "system_prompt_path": None,
    "max_file_size_bytes": 5_000_000,  # 5MB
    "temperature": 0.2,
    "debug": False,
    "openai_api_key": None,
    "openai_model": "gpt-4o-mini",
    "anthropic_api_key": None,
    "anthropic_model": "claude-3-5-sonnet-latest",
    "anthropic_max_tokens": 4000,
}

DEFAULT_CONFIG_FILE = Path("config.toml")

# Providers are always tried in this order, skipping those without a credential.
PROVIDER_PRIORITY: List[str] = ["openai", "anthropic"]

RAW_OUTPUT_FILENAME_TEMPLATE = "AI_RAW_{provider}.txt"
NOTES_FILENAME = "AI_NOTES.md"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

SUPPORTED_SET_PARAMS: Dict[str, Dict[str, Any]] = {
    "task": {
        "env_var": "TASK",
        "toml_key": "builder.task",
        "description": "Short instruction telling the model what to build from the master plan."
    },
    "master_plan_path": {
        "env_var": "MASTER_PLAN_PATH",
        "toml_key": "builder.master_plan_path",
        "description": "Path to the master plan document (UTF-8 text)."
    },
    "output_root": {
        "env_var": "BUILDER_OUTPUT_ROOT",
        "toml_key": "builder.output_root",
        "description": "Directory the manifest files and diagnostic artifacts are written under."
    },
    "manifest_format": {
        "env_var": "MANIFEST_FORMAT",
        "toml_key": "builder.format",
        "allowed_values": [f.value for f in ManifestFormat],
        "description": "Serialization the model is asked to answer in: 'json' or 'yaml'."
    },
    "allow_empty_manifest": {
        "env_var": "ALLOW_EMPTY_MANIFEST",
        "toml_key": "builder.allow_empty_manifest",
        "type": "bool",
        "description": "Accept a manifest with an empty 'files' list instead of falling back to the next provider."
    },
    "system_prompt_path": {
        "env_var": "BUILDER_SYSTEM_PROMPT_PATH",
        "toml_key": "builder.system_prompt_path",
        "description": "Path to a file whose content replaces the built-in system instruction."
    },
    "max_file_size_bytes": {
        "env_var": "BUILDER_MAX_FILE_SIZE_BYTES",
        "toml_key": "builder.max_file_size_bytes",
        "type": "int",
        "description": "Largest file content, in UTF-8 encoded bytes, the materializer will write."
    },
    "temperature": {
        "env_var": "BUILDER_TEMPERATURE",
        "toml_key": "generation.temperature",
        "type": "float",
        "description": "Sampling temperature sent to every provider (0.0 to 2.0)."
    },
    "debug": {
        "env_var": "BUILDER_DEBUG",
        "toml_key": "builder.debug",
        "type": "bool",
        "description": "Print request parameters to stderr before each provider call."
    },
    "openai_api_key": {
        "env_var": "OPENAI_API_KEY",
        "secret": True,
        "description": "Credential for the OpenAI provider. Environment only."
    },
    "openai_model": {
        "env_var": "OPENAI_MODEL",
        "toml_key": "providers.openai.model",
        "description": "OpenAI model identifier (e.g. 'gpt-4o-mini')."
    },
    "anthropic_api_key": {
        "env_var": "ANTHROPIC_API_KEY",
        "secret": True,
        "description": "Credential for the Anthropic provider. Environment only."
    },
    "anthropic_model": {
        "env_var": "ANTHROPIC_MODEL",
        "toml_key": "providers.anthropic.model",
        "description": "Anthropic model identifier (e.g. 'claude-3-5-sonnet-latest')."
    },
    "anthropic_max_tokens": {
        "env_var": "ANTHROPIC_MAX_TOKENS",
        "toml_key": "providers.anthropic.max_tokens",
        "type": "int",
        "description": "Maximum number of tokens the Anthropic provider may generate."
    },
}


class BuilderConfig(BaseModel):
    """Immutable run configuration, built once at process start."""
    task: str
    master_plan_path: Path
    output_root: Path
    manifest_format: ManifestFormat = ManifestFormat.JSON
    allow_empty_manifest: bool = False
    system_prompt_path: Optional[Path] = None
    max_file_size_bytes: int = ULTIMATE_DEFAULTS["max_file_size_bytes"]
    temperature: float = ULTIMATE_DEFAULTS["temperature"]
    debug: bool = False
    openai_api_key: Optional[SecretStr] = None
    openai_model: str = ULTIMATE_DEFAULTS["openai_model"]
    anthropic_api_key: Optional[SecretStr] = None
    anthropic_model: str = ULTIMATE_DEFAULTS["anthropic_model"]
    anthropic_max_tokens: int = ULTIMATE_DEFAULTS["anthropic_max_tokens"]
    model_config = ConfigDict(frozen=True)

    @property
    def configured_providers(self) -> List[str]:
        """Names of the providers holding a credential, in priority order."""
        return [name for name in PROVIDER_PRIORITY if getattr(self, f"{name}_api_key") is not None]


def coerce_param_value(param_name: str, value: Any) -> Any:
    """
    Converts a raw value (usually a string from the environment or the CLI)
    to the type expected for param_name. Raises ValueError when it cannot.
    """
    p_config = SUPPORTED_SET_PARAMS[param_name]
    value_type = p_config.get("type")

    if value_type == "bool":
        if isinstance(value, bool):
            return value
        lowered = str(value).strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ValueError(f"Expected a boolean (true/false), got '{value}'.")

    if value_type == "int":
        if isinstance(value, bool):
            raise ValueError(f"Expected a positive integer, got '{value}'.")
        int_value = int(value)
        if int_value <= 0:
            raise ValueError(f"Expected a positive integer, got '{value}'.")
        return int_value

    if value_type == "float":
        float_value = float(value)
        if not (0.0 <= float_value <= 2.0):  # Common range for temperature
            raise ValueError("Temperature must be between 0.0 and 2.0.")
        return float_value

    allowed_values = p_config.get("allowed_values")
    if allowed_values:
        lowered = str(value).strip().lower()
        if lowered not in allowed_values:
            raise ValueError(f"Allowed values: {', '.join(allowed_values)}.")
        return lowered

    return str(value)


def _lookup_toml(config_from_toml: Dict[str, Any], dotted_key: str) -> Any:
    node: Any = config_from_toml
    for part in dotted_key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def load_config_file(config_path: Path, console_obj=None) -> Dict[str, Any]:
    """
    Parses config.toml. A missing file yields an empty dict; a malformed one is
    reported as a warning and ignored.
    """
    if not config_path.exists():
        return {}
    try:
        return toml.load(config_path)
    except (toml.TomlDecodeError, OSError) as e:
        if console_obj:
            console_obj.print(f"[yellow]Warning: Could not load or parse {config_path}: {e}. Using internal defaults.[/yellow]")
        return {}


def get_config_value(
    param_name: str,
    runtime_overrides: Dict[str, Any],
    config_from_toml: Optional[Dict[str, Any]] = None,
    console_obj=None
) -> Any:
    """
    Retrieves a configuration value based on precedence:
    1. Runtime overrides (CLI flags)
    2. Environment variables
    3. Values from config.toml (never for credentials)
    4. Ultimate hardcoded defaults (ULTIMATE_DEFAULTS)

    A value that fails conversion is reported and the next source is tried.
    Empty strings count as unset.
    """
    if param_name not in SUPPORTED_SET_PARAMS:
        raise KeyError(f"Unknown configuration parameter '{param_name}'.")

    p_config = SUPPORTED_SET_PARAMS[param_name]
    candidates = [("override", runtime_overrides.get(param_name))]
    env_var_name = p_config.get("env_var")
    if env_var_name:
        candidates.append((env_var_name, os.getenv(env_var_name)))
    if config_from_toml and p_config.get("toml_key") and not p_config.get("secret"):
        candidates.append((f"config.toml [{p_config['toml_key']}]", _lookup_toml(config_from_toml, p_config["toml_key"])))

    for source, raw_value in candidates:
        if raw_value is None or (isinstance(raw_value, str) and not raw_value.strip()):
            continue
        try:
            return coerce_param_value(param_name, raw_value)
        except (TypeError, ValueError) as e:
            if console_obj:
                shown = "***" if p_config.get("secret") else raw_value
                console_obj.print(f"[yellow]Warning: Invalid value '{shown}' for {param_name} from {source}: {e} Ignoring it.[/yellow]")

    return ULTIMATE_DEFAULTS.get(param_name)


def build_config(
    runtime_overrides: Optional[Dict[str, Any]] = None,
    console_obj=None,
    config_path: Path = DEFAULT_CONFIG_FILE,
    use_dotenv: bool = True
) -> BuilderConfig:
    """
    Loads .env into the environment and config.toml, then resolves every
    supported parameter into a frozen BuilderConfig.
    """
    if use_dotenv:
        load_dotenv()
    runtime_overrides = runtime_overrides or {}
    config_from_toml = load_config_file(config_path, console_obj)

    values = {
        name: get_config_value(name, runtime_overrides, config_from_toml, console_obj)
        for name in SUPPORTED_SET_PARAMS
    }
    return BuilderConfig(**{k: v for k, v in values.items() if v is not None})


def list_config(config: BuilderConfig, console_obj):
    """Prints the resolved configuration, masking credentials."""
    console_obj.print("[bold blue]Resolved configuration:[/bold blue]")
    for name in SUPPORTED_SET_PARAMS:
        value = getattr(config, name)
        if SUPPORTED_SET_PARAMS[name].get("secret"):
            value = "set" if value is not None else "not set"
        console_obj.print(f"  - {name}: {value}")
