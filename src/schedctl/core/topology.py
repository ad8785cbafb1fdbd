# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Topology definition loading.

The submitter drops a <topology_name>.defn YAML file into the scheduler's
working directory. This module locates it, validates it into a frozen
TopologyDescriptor and derives the topology configuration layer from it.

Example .defn:
    id: wordcount-1a2b3c
    name: wordcount
    containers: 2
    components:
      - name: word
        parallelism: 2
      - name: count
        parallelism: 1
        ram_mb: 2048
"""

import logging
from dataclasses import field
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Type

import marshmallow
import yaml
from marshmallow import Schema
from marshmallow.validate import Length, Range
from marshmallow_dataclass import dataclass

from . import keys
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

TOPOLOGY_DEFN_SUFFIX = ".defn"


@dataclass(frozen=True)
class ComponentSpec:
    """One spout or bolt of the topology."""

    name: str
    parallelism: int = field(default=1, metadata={"validate": Range(min=1)})
    ram_mb: Optional[int] = field(default=None, metadata={"validate": Range(min=1)})

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class TopologyDescriptor:
    """Deserialized topology definition."""

    id: str
    name: str
    components: List[ComponentSpec] = field(metadata={"validate": Length(min=1)})

    # Number of containers the submitter asked for, excluding the scheduler's own
    containers: int = field(default=1, metadata={"validate": Range(min=1)})

    # Extra config entries, applied with the topology layer
    config: Dict[str, Any] = field(default_factory=dict)

    Schema: ClassVar[Type[Schema]] = Schema

    @property
    def parallelism_total(self) -> int:
        """Total number of parallel units (instances) across all components."""
        return sum(c.parallelism for c in self.components)


def lookup_topology_defn_file(directory: Path | str, topology_name: str) -> Path:
    """Find the topology definition file for a topology.

    Raises:
        ConfigurationError: If no definition file exists
    """
    path = Path(directory) / f"{topology_name}{TOPOLOGY_DEFN_SUFFIX}"
    if not path.is_file():
        raise ConfigurationError(f"Topology definition file not found: {path}")
    return path


def load_topology(path: Path) -> TopologyDescriptor:
    """Load and validate a topology definition file.

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read topology definition {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Topology definition {path} must be a mapping")

    try:
        topology = TopologyDescriptor.Schema().load(data)
    except marshmallow.ValidationError as e:
        raise ConfigurationError(f"Invalid topology definition {path}: {e.messages}") from e

    logger.info(
        "Loaded topology %s (id=%s): %d components, %d instances",
        topology.name,
        topology.id,
        len(topology.components),
        topology.parallelism_total,
    )
    return topology


def get_num_containers(topology: TopologyDescriptor) -> int:
    """Containers requested for the topology's instances."""
    return topology.containers


def package_type(package_file: str) -> str:
    """Classify a topology package by its file name."""
    name = Path(package_file).name
    if name.endswith(".jar"):
        return "jar"
    if name.endswith(".pex"):
        return "pex"
    return "tar"


def topology_config_layer(
    package_file: str,
    defn_file: Path,
    topology: TopologyDescriptor,
) -> dict[str, Any]:
    """Build the topology-derived configuration layer.

    Entries from the definition's config mapping are included; the topology
    identity keys always come from the descriptor itself.
    """
    layer: dict[str, Any] = {str(key): value for key, value in topology.config.items()}
    layer[keys.TOPOLOGY_ID] = topology.id
    layer[keys.TOPOLOGY_NAME] = topology.name
    layer[keys.TOPOLOGY_DEFINITION_FILE] = str(defn_file)
    layer[keys.TOPOLOGY_PACKAGE_FILE] = package_file
    layer[keys.TOPOLOGY_PACKAGE_TYPE] = package_type(package_file)
    return layer
