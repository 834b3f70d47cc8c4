"""Client configuration loading from YAML files."""

import time
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from src.features.config.schemas.client import ClientConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


def _format_errors(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "loc": ".".join(str(loc) for loc in err["loc"]),
            "msg": err["msg"],
            "type": err["type"],
        }
        for err in error.errors()
    ]


def load_client_config(file_path: Path) -> ClientConfig:
    """Load and validate a client configuration file.

    The file holds a mapping of ClientConfig fields; an empty file yields
    the defaults.

    Args:
        file_path: Path to the YAML file.

    Returns:
        Validated ClientConfig.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed or does not validate.
    """
    start_time = time.perf_counter()
    log = logger.bind(component="config", file_path=str(file_path))
    log.info("loading_config_file")

    content = file_path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        errors = [{"loc": "", "msg": str(e), "type": "yaml_error"}]
        log.error("config_yaml_invalid", errors=errors)
        raise ConfigValidationError(errors, str(file_path)) from e

    if not isinstance(data, dict):
        errors = [
            {"loc": "", "msg": "Top level must be a mapping", "type": "mapping_type"}
        ]
        log.error("config_validation_failed", validation_error_count=1, errors=errors)
        raise ConfigValidationError(errors, str(file_path))

    try:
        config = ClientConfig.model_validate(data)
    except ValidationError as e:
        errors = _format_errors(e)
        log.error(
            "config_validation_failed",
            validation_error_count=len(errors),
            errors=errors,
        )
        raise ConfigValidationError(errors, str(file_path)) from e

    log.info(
        "config_file_loaded",
        config_validation_duration_ms=(time.perf_counter() - start_time) * 1000,
    )
    return config
