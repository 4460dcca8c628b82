# Purpose: Parse options and their YAML config file.

import os
from dataclasses import dataclass

import yaml
from jsonschema import Draft7Validator

# --- CONFIGURATION ---
MAX_PAYLOAD_LENGTH = 4096

# Keys accepted in a config file, mapped to ParseOptions attributes.
OPTION_KEYS = {
    "strictMode": "strict_mode",
    "extractPartialOnError": "extract_partial_on_error",
    "maxLength": "max_length",
}

OPTIONS_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "ParseOptions",
    "type": "object",
    "properties": {
        "strictMode": {"type": "boolean"},
        "extractPartialOnError": {"type": "boolean"},
        "maxLength": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}


class OptionsError(ValueError):
    pass


@dataclass(frozen=True)
class ParseOptions:
    strict_mode: bool = False
    extract_partial_on_error: bool = False
    max_length: int = MAX_PAYLOAD_LENGTH

    @classmethod
    def from_mapping(cls, data):
        """Builds options from a camelCase mapping, validated against OPTIONS_SCHEMA."""
        if data is None:
            return cls()
        errors = sorted(Draft7Validator(OPTIONS_SCHEMA).iter_errors(data), key=lambda e: list(e.path))
        if errors:
            details = "; ".join(
                f"{'.'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors
            )
            raise OptionsError(f"Invalid parse options: {details}")
        return cls(**{OPTION_KEYS[k]: v for k, v in data.items()})

    def to_mapping(self):
        return {key: getattr(self, attr) for key, attr in OPTION_KEYS.items()}


def load_options(path):
    """Reads ParseOptions from a YAML file. An empty file gives the defaults."""
    if not os.path.exists(path):
        raise OptionsError(f"Options file '{path}' not found")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise OptionsError(f"Options file '{path}' is not valid YAML: {e}") from e
    return ParseOptions.from_mapping(data)
