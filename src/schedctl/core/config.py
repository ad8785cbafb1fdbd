# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Layered configuration assembly and placeholder expansion.

This module provides:
- Config: immutable mapping of dotted keys to values
- assemble(): merge an ordered list of layers (last writer wins per key)
- expand(): resolve ${key} placeholders to a fixed point
- load_sandbox_config(): read the sandbox override YAML files
- require(): fetch a key a consumer cannot do without
"""

import logging
import re
from collections.abc import Iterator, Mapping, Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ConfigurationError
from .keys import SANDBOX_CONFIG_FILES

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^${}]+)\}")


class Config(Mapping[str, Any]):
    """Read-only view over a merged set of configuration layers."""

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values = MappingProxyType(dict(values or {}))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        items = ", ".join(f"{k}={v!r}" for k, v in sorted(self._values.items()))
        return f"Config({items})"


def assemble(layers: Sequence[Mapping[str, Any]]) -> Config:
    """Merge configuration layers into one Config.

    Later layers override earlier ones on key collision. Values are replaced
    whole; nested mappings are not merged.

    Args:
        layers: Ordered layers, lowest precedence first

    Returns:
        New Config holding the union of all keys
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)
    return Config(merged)


def expand(config: Mapping[str, Any]) -> Config:
    """Resolve ${key} placeholders against the config itself.

    A string that is exactly one placeholder takes the referenced value with
    its type. Placeholders embedded in longer strings are replaced by the
    referenced value's str(). Substitution repeats until no placeholder
    remains. Lists and dicts are expanded recursively.

    Args:
        config: Assembled configuration

    Returns:
        New, fully expanded Config

    Raises:
        ConfigurationError: If a placeholder is undefined or references form a cycle
    """
    resolved: dict[str, Any] = {}
    resolving: list[str] = []

    def resolve_key(key: str) -> Any:
        if key in resolved:
            return resolved[key]
        if key in resolving:
            cycle = " -> ".join(resolving[resolving.index(key) :] + [key])
            raise ConfigurationError(f"Cyclic placeholder reference: {cycle}")
        if key not in config:
            referrer = resolving[-1] if resolving else "<root>"
            raise ConfigurationError(f"Undefined placeholder ${{{key}}} referenced by '{referrer}'")

        resolving.append(key)
        try:
            value = expand_value(config[key])
        finally:
            resolving.pop()
        resolved[key] = value
        return value

    def expand_string(value: str) -> Any:
        seen: set[str] = set()
        while True:
            whole = _PLACEHOLDER.fullmatch(value)
            if whole:
                return resolve_key(whole.group(1))
            if not _PLACEHOLDER.search(value):
                return value
            # Substitution produced a string we already expanded once
            if value in seen:
                raise ConfigurationError(f"Placeholder expansion does not terminate: {value!r}")
            seen.add(value)
            value = _PLACEHOLDER.sub(lambda m: str(resolve_key(m.group(1))), value)

    def expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return expand_string(value)
        elif isinstance(value, dict):
            return {k: expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [expand_value(item) for item in value]
        else:
            return value

    for key in config:
        resolve_key(key)

    return Config(resolved)


def require(config: Mapping[str, Any], key: str) -> Any:
    """Get a key the caller cannot proceed without.

    Raises:
        ConfigurationError: If the key is missing or None
    """
    value = config.get(key)
    if value is None:
        raise ConfigurationError(f"Missing required config key: {key}")
    return value


def load_sandbox_config(conf_dir: Path) -> dict[str, Any]:
    """Load sandbox override files from a conf directory.

    Files are read in SANDBOX_CONFIG_FILES order and merged, so a key in
    scheduler.yaml overrides the same key in defaults.yaml. Missing files
    are skipped.

    Args:
        conf_dir: Directory containing the YAML override files

    Returns:
        Merged key/value overrides

    Raises:
        ConfigurationError: If a file is not valid YAML or not a mapping
    """
    overrides: dict[str, Any] = {}
    if not conf_dir.is_dir():
        logger.debug("Sandbox conf dir %s not found, using cluster defaults only", conf_dir)
        return overrides

    for name in SANDBOX_CONFIG_FILES:
        path = conf_dir / name
        if not path.exists():
            continue

        try:
            with open(path) as f:
                content = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        if content is None:
            continue
        if not isinstance(content, dict):
            raise ConfigurationError(f"{path} must contain a mapping, got {type(content).__name__}")

        logger.debug("Loaded %d sandbox overrides from %s", len(content), path)
        overrides.update({str(k): v for k, v in content.items()})

    return overrides
