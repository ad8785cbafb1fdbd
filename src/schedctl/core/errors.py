# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy for the scheduler process.

Every fallible lifecycle step raises one of these, so the lifecycle can log
which step failed and why before tearing down what it already acquired.
"""


class SchedctlError(Exception):
    """Base class for all scheduler errors."""


class ConfigurationError(SchedctlError):
    """Bad, missing or cyclic configuration."""


class ComponentResolutionError(SchedctlError):
    """A pluggable component type is unknown or does not implement its capability."""


class CoordinationError(SchedctlError):
    """State manager connectivity or serialization failure."""


class PackingError(SchedctlError):
    """The topology cannot be packed into the requested containers."""


class ServerStartError(SchedctlError):
    """The admin server could not bind or start."""


class SchedulingActionError(SchedctlError):
    """The scheduler backend failed to perform an action."""
