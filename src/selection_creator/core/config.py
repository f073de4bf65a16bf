"""Configuration resolution: CLI overrides, then environment, then interactive prompt."""

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

from pydantic import ValidationError

from .exceptions import ConfigurationError
from .models import SelectionConfig


DEFAULT_INPUT_DIR = os.path.join("images", "compressed")


@dataclass(frozen=True)
class ConfigField:
    """Where one configuration value comes from."""

    name: str
    env_var: str
    prompt: Optional[str] = None
    default: Optional[str] = None
    required: bool = True


CONFIG_FIELDS = (
    ConfigField("region", "AWS_REGION", "Enter AWS region: "),
    ConfigField("aws_access_key_id", "AWS_ACCESS_KEY_ID", "Enter AWS access key ID: ", required=False),
    ConfigField("aws_secret_access_key", "AWS_SECRET_ACCESS_KEY", "Enter AWS secret access key: ", required=False),
    ConfigField("bucket", "S3_BUCKET", "Enter S3 bucket name: "),
    ConfigField("username", "USERNAME", "Enter username: "),
    ConfigField("event_id", "EVENT_ID", "Enter event ID: "),
    ConfigField("event_title", "EVENT_TITLE", "Enter event title: "),
    ConfigField("max_number_of_photos", "MAX_NUMBER_OF_PHOTOS", "Enter max number of photos: "),
    ConfigField("input_dir", "INPUT_DIR", default=DEFAULT_INPUT_DIR),
    ConfigField("selection_table", "DYNAMODB_TABLE_SELECTION", default="Selection"),
    ConfigField("selection_item_table", "DYNAMODB_TABLE_SELECTION_ITEM", default="SelectionItem"),
    ConfigField("events_table", "EVENTS_TABLE", default="Events"),
    ConfigField("processor", "PROCESSOR", required=False),
    ConfigField("concurrency", "CONCURRENCY", required=False),
)


def _resolve(
    field: ConfigField,
    overrides: Mapping[str, Any],
    environ: Mapping[str, str],
    prompt: Optional[Callable[[str], str]],
) -> Any:
    value = overrides.get(field.name)
    if value is not None:
        return value

    value = environ.get(field.env_var, "").strip()
    if value:
        return value

    if field.default is not None:
        return field.default

    if field.prompt and prompt is not None:
        value = prompt(field.prompt).strip()
        if value:
            return value

    if field.required:
        raise ConfigurationError(
            f"Missing required setting '{field.name}' (set {field.env_var} or pass it on the command line)"
        )
    return None


def load_config(
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    prompt: Optional[Callable[[str], str]] = input,
) -> SelectionConfig:
    """
    Resolve and validate the configuration bundle for one run.

    Args:
        overrides: Values from the command line; ``None`` entries are ignored
        environ: Environment to read (defaults to ``os.environ``)
        prompt: Callable used to ask for missing values; ``None`` disables prompting

    Returns:
        Validated SelectionConfig

    Raises:
        ConfigurationError: A required value is missing or a value is invalid
    """
    overrides = overrides or {}
    environ = os.environ if environ is None else environ

    values: Dict[str, Any] = {}
    for field in CONFIG_FIELDS:
        value = _resolve(field, overrides, environ, prompt)
        if value is not None:
            values[field.name] = value

    for name in ("debug", "url_expiry_seconds"):
        if overrides.get(name) is not None:
            values[name] = overrides[name]

    try:
        return SelectionConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
