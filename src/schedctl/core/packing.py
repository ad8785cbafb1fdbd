# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Packing plan types.

A PackingPlan assigns every instance of a topology to exactly one container.
It is produced once per scheduling session by the configured packer and
serialized into the runtime config as the instance distribution string.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class InstancePlan:
    """A single parallel unit placed in a container."""

    component: str
    task_id: int  # Unique across the topology, starting at 1
    component_index: int  # Index within the component, starting at 0
    ram_mb: int


@dataclass(frozen=True)
class ContainerPlan:
    """The instances assigned to one container."""

    id: int
    instances: tuple[InstancePlan, ...]

    @property
    def ram_mb(self) -> int:
        """RAM required by all instances in this container."""
        return sum(i.ram_mb for i in self.instances)


@dataclass(frozen=True)
class PackingPlan:
    """Assignment of a topology's instances into containers."""

    topology_id: str
    containers: tuple[ContainerPlan, ...]

    @property
    def num_containers(self) -> int:
        return len(self.containers)

    @property
    def num_instances(self) -> int:
        return sum(len(c.instances) for c in self.containers)

    def to_distribution_string(self) -> str:
        """Serialize as an instance distribution descriptor.

        Format: containers in id order joined by ",", each rendered as
        "<container>:<component>:<task>:<index>[:<component>:<task>:<index>...]".

        Example:
            1:count:1:0:word:3:1,2:word:2:0
        """
        parts = []
        for container in sorted(self.containers, key=lambda c: c.id):
            fields = [str(container.id)]
            for instance in sorted(container.instances, key=lambda i: i.task_id):
                fields.extend([instance.component, str(instance.task_id), str(instance.component_index)])
            parts.append(":".join(fields))
        return ",".join(parts)
