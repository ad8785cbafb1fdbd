# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for the component registry and factory."""

import pytest

from schedctl.core.components import (
    Capability,
    create_component,
    list_components,
    register_component,
    resolve_component_class,
)
from schedctl.core.errors import ComponentResolutionError
from schedctl.packers import RoundRobinPacking
from schedctl.schedulers import LocalScheduler, SlurmScheduler
from schedctl.statemgrs import EtcdStateManager, InMemoryStateManager, LocalFileSystemStateManager


class BrokenConstructorPacker:
    def __init__(self):
        raise RuntimeError("no packer for you")

    def initialize(self, config, runtime):
        pass

    def pack(self):
        pass

    def close(self):
        pass


class NotAScheduler:
    def initialize(self, config, runtime):
        pass


register_component("test_broken_constructor", Capability.PACKER)(BrokenConstructorPacker)


class TestRegistry:
    """Tests for built-in registrations."""

    def test_builtin_state_managers(self):
        """memory, localfs and etcd are registered."""
        assert {"memory", "localfs", "etcd"} <= set(list_components(Capability.STATE_MANAGER))

    def test_builtin_packers(self):
        """round_robin is registered."""
        assert "round_robin" in list_components(Capability.PACKER)

    def test_builtin_schedulers(self):
        """local and slurm are registered."""
        assert {"local", "slurm"} <= set(list_components(Capability.SCHEDULER))

    @pytest.mark.parametrize(
        "name,capability,expected",
        [
            ("memory", Capability.STATE_MANAGER, InMemoryStateManager),
            ("localfs", Capability.STATE_MANAGER, LocalFileSystemStateManager),
            ("etcd", Capability.STATE_MANAGER, EtcdStateManager),
            ("round_robin", Capability.PACKER, RoundRobinPacking),
            ("local", Capability.SCHEDULER, LocalScheduler),
            ("slurm", Capability.SCHEDULER, SlurmScheduler),
        ],
    )
    def test_resolve_short_name(self, name, capability, expected):
        """Short names resolve to their classes."""
        assert resolve_component_class(name, capability) is expected

    def test_register_non_conforming_class(self):
        """Registering a class without every operation fails immediately."""
        with pytest.raises(ComponentResolutionError, match="missing schedule, close"):
            register_component("test_not_a_scheduler", Capability.SCHEDULER)(NotAScheduler)

        assert "test_not_a_scheduler" not in list_components(Capability.SCHEDULER)

    def test_names_scoped_by_capability(self):
        """A packer name does not resolve as a scheduler."""
        with pytest.raises(ComponentResolutionError, match="Unknown scheduler type"):
            resolve_component_class("round_robin", Capability.SCHEDULER)


class TestCreateComponent:
    """Tests for component construction."""

    def test_creates_fresh_instances(self):
        """Every call constructs a new, uninitialized instance."""
        first = create_component("memory", Capability.STATE_MANAGER)
        second = create_component("memory", Capability.STATE_MANAGER)

        assert isinstance(first, InMemoryStateManager)
        assert first is not second
        assert first.initialized is False

    def test_unknown_name(self):
        """An unregistered short name lists what is available."""
        with pytest.raises(ComponentResolutionError, match="Unknown packer type: 'first_fit'.*round_robin"):
            create_component("first_fit", Capability.PACKER)

    @pytest.mark.parametrize(
        "path",
        [
            "schedctl.statemgrs.memory.InMemoryStateManager",
            "schedctl.statemgrs.memory:InMemoryStateManager",
        ],
    )
    def test_import_path(self, path):
        """Dotted and colon import paths are accepted."""
        assert isinstance(create_component(path, Capability.STATE_MANAGER), InMemoryStateManager)

    def test_import_path_missing_module(self):
        """An import path to a missing module is a resolution error."""
        with pytest.raises(ComponentResolutionError, match="Cannot import module"):
            create_component("schedctl.nope.Manager", Capability.STATE_MANAGER)

    def test_import_path_missing_attribute(self):
        """An import path to a missing class is a resolution error."""
        with pytest.raises(ComponentResolutionError, match="has no attribute"):
            create_component("schedctl.statemgrs.memory.Nope", Capability.STATE_MANAGER)

    def test_import_path_not_a_class(self):
        """An import path to a non-class object is rejected."""
        with pytest.raises(ComponentResolutionError, match="is not a class"):
            create_component("schedctl.core.keys.CLUSTER", Capability.STATE_MANAGER)

    def test_import_path_wrong_capability(self):
        """A class imported by path must provide the capability's operations."""
        with pytest.raises(ComponentResolutionError, match="is not a state manager"):
            create_component("schedctl.packers.round_robin.RoundRobinPacking", Capability.STATE_MANAGER)

    def test_constructor_failure(self):
        """Exceptions from the constructor become ComponentResolutionError."""
        with pytest.raises(ComponentResolutionError, match="no packer for you") as exc_info:
            create_component("test_broken_constructor", Capability.PACKER)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
