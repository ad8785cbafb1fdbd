# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Pluggable component protocols and the factory that builds them.

Three capabilities are pluggable, each selected by a config key:
- state manager (statemgr.class): where scheduler metadata is published
- packer (packing.class): how instances are assigned to containers
- scheduler (scheduler.class): how containers are launched

Implementations register under a short name with @register_component. The
factory also accepts a dotted import path ("pkg.module.Class" or
"pkg.module:Class") so out-of-tree backends need no change here.
"""

import enum
import importlib
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from .errors import ComponentResolutionError

if TYPE_CHECKING:
    from .packing import PackingPlan
    from .statemgr import SchedulerLocation

logger = logging.getLogger(__name__)


class StateManagerProtocol(Protocol):
    """Protocol that all state managers must implement."""

    def initialize(self, config: Mapping[str, Any]) -> None:
        """Connect to the coordination store."""
        ...

    def set_scheduler_location(self, location: "SchedulerLocation", topology_name: str) -> None:
        """Publish the scheduler location, overwriting any previous record."""
        ...

    def get_scheduler_location(self, topology_name: str) -> "SchedulerLocation | None":
        """Read the scheduler location, or None if not registered."""
        ...

    def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...


class PackingProtocol(Protocol):
    """Protocol that all packers must implement."""

    def initialize(self, config: Mapping[str, Any], runtime: Mapping[str, Any]) -> None: ...

    def pack(self) -> "PackingPlan":
        """Compute the packing plan. Same inputs must give an equivalent plan."""
        ...

    def close(self) -> None: ...


class SchedulerProtocol(Protocol):
    """Protocol that all schedulers must implement."""

    def initialize(self, config: Mapping[str, Any], runtime: Mapping[str, Any]) -> None: ...

    def schedule(self, packing: "PackingPlan") -> bool:
        """Launch the containers of a packing plan.

        Returns:
            True if the topology was scheduled
        """
        ...

    def close(self) -> None: ...


class Capability(enum.Enum):
    """Pluggable roles and the operations an implementation must provide."""

    STATE_MANAGER = ("state manager", ("initialize", "set_scheduler_location", "get_scheduler_location", "close"))
    PACKER = ("packer", ("initialize", "pack", "close"))
    SCHEDULER = ("scheduler", ("initialize", "schedule", "close"))

    def __init__(self, label: str, operations: tuple[str, ...]):
        self.label = label
        self.operations = operations

    def missing_operations(self, cls: type) -> list[str]:
        return [op for op in self.operations if not callable(getattr(cls, op, None))]


# Registry of component classes by capability and short name
_COMPONENTS: dict[Capability, dict[str, type]] = {capability: {} for capability in Capability}


def register_component(name: str, capability: Capability):
    """Decorator to register a component class under a short name.

    Usage:
        @register_component("round_robin", Capability.PACKER)
        class RoundRobinPacking:
            ...

    Raises:
        ComponentResolutionError: If the class lacks an operation of the capability
    """

    def decorator(cls: type) -> type:
        missing = capability.missing_operations(cls)
        if missing:
            raise ComponentResolutionError(
                f"{cls.__qualname__} cannot be registered as {capability.label} '{name}': "
                f"missing {', '.join(missing)}"
            )
        _COMPONENTS[capability][name] = cls
        return cls

    return decorator


def list_components(capability: Capability) -> list[str]:
    """List registered short names for a capability."""
    _load_builtin_components()
    return sorted(_COMPONENTS[capability].keys())


def _load_builtin_components() -> None:
    # Import here to avoid circular imports; importing registers the built-ins
    import schedctl.packers  # noqa: F401
    import schedctl.schedulers  # noqa: F401
    import schedctl.statemgrs  # noqa: F401


def _import_class(path: str) -> type:
    if ":" in path:
        module_name, _, attr = path.partition(":")
    else:
        module_name, _, attr = path.rpartition(".")

    if not module_name or not attr:
        raise ComponentResolutionError(f"Not a registered name or import path: {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ComponentResolutionError(f"Cannot import module {module_name!r} for {path!r}: {e}") from e

    try:
        obj = getattr(module, attr)
    except AttributeError as e:
        raise ComponentResolutionError(f"Module {module_name!r} has no attribute {attr!r}") from e

    if not isinstance(obj, type):
        raise ComponentResolutionError(f"{path!r} is not a class")
    return obj


def resolve_component_class(type_name: str, capability: Capability) -> type:
    """Resolve a configured type name to a class implementing the capability.

    Raises:
        ComponentResolutionError: If the type is unknown or non-conforming
    """
    _load_builtin_components()

    registered = _COMPONENTS[capability]
    if type_name in registered:
        return registered[type_name]

    if "." not in type_name and ":" not in type_name:
        available = ", ".join(sorted(registered.keys()))
        raise ComponentResolutionError(
            f"Unknown {capability.label} type: {type_name!r}. Available: {available}"
        )

    cls = _import_class(type_name)
    missing = capability.missing_operations(cls)
    if missing:
        raise ComponentResolutionError(f"{type_name} is not a {capability.label}: missing {', '.join(missing)}")
    return cls


def create_component(type_name: str, capability: Capability) -> Any:
    """Construct an uninitialized component.

    The caller is responsible for calling initialize() before use and close()
    once it is done with the component.

    Raises:
        ComponentResolutionError: If the type cannot be resolved or constructed
    """
    cls = resolve_component_class(type_name, capability)
    try:
        instance = cls()
    except Exception as e:
        raise ComponentResolutionError(f"Cannot construct {capability.label} {type_name!r}: {e}") from e

    logger.info("Created %s: %s", capability.label, cls.__qualname__)
    return instance
