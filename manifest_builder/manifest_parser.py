# manifest_builder/manifest_parser.py
import json
from abc import ABC, abstractmethod
from typing import Any, Dict

import yaml

from manifest_builder.data_models import ManifestFormat
from manifest_builder.errors import ParseError


class ManifestParser(ABC):
    """Deserializes an extracted payload into the raw manifest mapping."""

    format_name: str = ""

    @abstractmethod
    def load(self, payload: str) -> Any:
        """Deserialize payload. May raise the format library's own errors."""

    def parse(self, payload: str) -> Dict[str, Any]:
        try:
            data = self.load(payload)
        except (ValueError, TypeError, RecursionError, yaml.YAMLError) as e:
            raise ParseError(f"Payload is not valid {self.format_name}: {e}") from e
        if not isinstance(data, dict):
            raise ParseError(
                f"Top level of the {self.format_name} payload must be a mapping, got {type(data).__name__}."
            )
        return data


class JsonManifestParser(ManifestParser):
    format_name = "JSON"

    def load(self, payload: str) -> Any:
        return json.loads(payload)


class YamlManifestParser(ManifestParser):
    format_name = "YAML"

    def load(self, payload: str) -> Any:
        return yaml.safe_load(payload)


PARSERS: Dict[ManifestFormat, ManifestParser] = {
    ManifestFormat.JSON: JsonManifestParser(),
    ManifestFormat.YAML: YamlManifestParser(),
}


def get_parser(manifest_format: ManifestFormat) -> ManifestParser:
    return PARSERS[ManifestFormat(manifest_format)]


def parse_manifest(payload: str, manifest_format: ManifestFormat = ManifestFormat.JSON) -> Dict[str, Any]:
    """
    Parses payload with the parser of the configured format.
    Any failure, syntax or shape, surfaces as ParseError.
    """
    return get_parser(manifest_format).parse(payload)
