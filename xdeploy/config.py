import json
import os
import re
import typing
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

import yaml
from eth_utils import is_address

from xdeploy.constants import ARTIFACTS_DIR, MAX_UINT256, TOKEN_DECIMALS
from xdeploy.exceptions import ConfigurationError

Predicate = Callable[[Any], bool]
DeploymentConfig = Mapping[str, Any]

YAML_SUFFIXES = (".yml", ".yaml")
LIST_DELIMITER = ","


#
# Predicates
#


def is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def is_uint(value: Any) -> bool:
    """Non-negative integers that fit a uint256, or their decimal string representation."""
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        value = value.strip()
        if not value.isdecimal() or len(value.lstrip("0")) > len(str(MAX_UINT256)):
            return False
        value = int(value)
    return isinstance(value, int) and 0 <= value <= MAX_UINT256


def is_number(value: Any) -> bool:
    """
    Amounts in whole token units, e.g. 1000, 2.5 or "1e6", whose wei value
    fits a uint256.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return False
    try:
        amount = Decimal(str(value).strip())
        if not amount.is_finite():
            return False
        return 0 <= amount * 10**TOKEN_DECIMALS <= MAX_UINT256
    except ArithmeticError:
        return False


def is_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    return isinstance(value, str) and value.strip().lower() in ("true", "false")


def list_of(predicate: Predicate) -> Predicate:
    def _is_list(value: Any) -> bool:
        return isinstance(value, (list, tuple)) and all(predicate(v) for v in value)

    _is_list.__name__ = f"list_of_{predicate.__name__}"
    return _is_list


def is_token_spec(value: Any) -> bool:
    """A token entry: a name plus either an existing address or an initial rate."""
    if not isinstance(value, dict) or not is_text(value.get("name")):
        return False
    address = value.get("address")
    if address:
        return is_address(address)
    return is_number(value.get("initialRate"))


def to_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


#
# Schema
#


def _screaming_snake(name: str) -> str:
    if name.isupper():
        return name
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).upper()


class Field(NamedTuple):
    """A single named configuration field."""

    name: str
    predicate: Predicate = is_text
    required: bool = True
    description: str = ""
    multiple: bool = False
    envvar: Optional[str] = None

    @property
    def env_name(self) -> str:
        return self.envvar or _screaming_snake(self.name)


ConfigSchema = Tuple[Field, ...]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_config(config: DeploymentConfig, schema: ConfigSchema) -> DeploymentConfig:
    """
    Returns the config unchanged if every required field is present and every
    present field satisfies its predicate. Fails on the first offending field,
    in schema declaration order.
    """
    for field in schema:
        value = config.get(field.name)
        if _is_missing(value):
            if field.required:
                raise ConfigurationError(field.name, "not provided")
            continue
        if not field.predicate(value):
            raise ConfigurationError(
                field.name, f"value {value!r} does not satisfy {field.predicate.__name__}"
            )
    return config


#
# Sources
#


class ConfigFile(NamedTuple):
    """Contents of a deployment parameters file."""

    filepath: Path
    parameters: Dict[str, Any]
    flow: Optional[str] = None
    chain_id: Optional[int] = None
    artifact_filepath: Optional[Path] = None


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file)


def _load_json(filepath: Path) -> dict:
    """Loads a JSON file."""
    with open(filepath, "r") as file:
        return json.load(file)


def _get_artifact_filepath(filepath: Path, data: Dict) -> Optional[Path]:
    artifact_config = data.get("artifacts") or {}
    filename = artifact_config.get("filename")
    if not filename:
        return None
    artifact_dir = Path(artifact_config.get("dir") or ARTIFACTS_DIR)
    return artifact_dir / filename


def read_config_file(filepath: Path) -> ConfigFile:
    """
    Reads a YAML or JSON parameters file.

    Files either hold a flat mapping of parameters, or a structured document:

        deployment:
          flow: xerc20
          chain_id: 11155111
        artifacts:
          filename: xerc20.json
        parameters:
          xerc20FactoryAddress: "0x..."
    """
    filepath = Path(filepath)
    try:
        if filepath.suffix in YAML_SUFFIXES:
            data = _load_yaml(filepath)
        else:
            data = _load_json(filepath)
    except (yaml.YAMLError, ValueError) as e:
        raise ConfigurationError(str(filepath), f"cannot be parsed: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(str(filepath), "parameters file must contain a mapping")

    if "parameters" not in data:
        return ConfigFile(filepath=filepath, parameters=dict(data))

    parameters = data.get("parameters") or {}
    if not isinstance(parameters, dict):
        raise ConfigurationError("parameters", "must be a mapping")

    deployment = data.get("deployment") or {}
    chain_id = deployment.get("chain_id")
    if chain_id is not None and not is_uint(chain_id):
        raise ConfigurationError("chain_id", f"value {chain_id!r} is not a chain id")
    return ConfigFile(
        filepath=filepath,
        parameters=dict(parameters),
        flow=deployment.get("flow"),
        chain_id=int(chain_id) if chain_id is not None else None,
        artifact_filepath=_get_artifact_filepath(filepath, data),
    )


def config_from_env(
    schema: ConfigSchema, environ: typing.Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Collects the schema's fields from environment variables."""
    environ = os.environ if environ is None else environ
    config = dict()
    for field in schema:
        value = environ.get(field.env_name)
        if value is None:
            continue
        if field.multiple:
            value = [v.strip() for v in value.split(LIST_DELIMITER) if v.strip()]
        config[field.name] = value
    return config


def config_from_pairs(pairs: Iterable[Tuple[str, str]], schema: ConfigSchema = ()) -> Dict[str, Any]:
    """Collects ``KEY=VALUE`` overrides given on the command line."""
    multiple = {field.name for field in schema if field.multiple}
    config = dict()
    for key, value in pairs:
        if key in multiple:
            value = [v.strip() for v in value.split(LIST_DELIMITER) if v.strip()]
        config[key] = value
    return config


def merge_sources(*configs: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Later sources win; unset values never override."""
    merged = dict()
    for config in configs:
        for name, value in (config or {}).items():
            if value is None:
                continue
            merged[name] = value
    return merged


def describe_schema(schema: ConfigSchema) -> List[str]:
    lines = list()
    for field in schema:
        marker = "required" if field.required else "optional"
        lines.append(f"{field.name} ({marker}, env {field.env_name}) {field.description}".rstrip())
    return lines
