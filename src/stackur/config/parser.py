"""Loading of stackur.yaml into validated settings."""

from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import ValidationError

from .models import Settings

DEFAULT_CONFIG_PATH = "stackur.yaml"


class ConfigValidationError(Exception):
    """stackur.yaml could not be parsed or does not match the schema.

    ``errors`` holds one ``{"loc": [...], "msg": ...}`` entry per problem.
    """

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors or [])

    def __str__(self) -> str:
        details = [
            f"  - {' -> '.join(str(part) for part in error.get('loc', [])) or '<document>'}: "
            f"{error.get('msg', 'invalid value')}"
            for error in self.errors
        ]
        return "\n".join([self.message, ""] + details) if details else self.message


def _invalid(errors: List[Dict]) -> ConfigValidationError:
    return ConfigValidationError(f"Configuration validation failed with {len(errors)} error(s)", errors)


def load_settings(config_path: Optional[Union[str, Path]] = None, required: bool = False) -> Settings:
    """Read and validate a settings file.

    Args:
        config_path: YAML file to read; stackur.yaml when omitted
        required: Fail instead of falling back to defaults when the file is missing

    Returns:
        Validated settings

    Raises:
        ConfigValidationError: If the file is not valid YAML or not a valid settings document
        FileNotFoundError: If ``required`` is set and the file does not exist
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)

    if not path.is_file():
        if required:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return Settings()

    try:
        document = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"{path} is not valid YAML: {e}") from e

    if not isinstance(document, dict):
        raise _invalid([{"loc": [], "msg": f"expected a mapping at the top level, got {type(document).__name__}"}])

    try:
        return Settings.model_validate(document)
    except ValidationError as e:
        raise _invalid([{"loc": list(error["loc"]), "msg": error["msg"]} for error in e.errors()]) from e
