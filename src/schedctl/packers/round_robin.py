# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Round-robin packer."""

import logging
from collections.abc import Mapping
from typing import Any

from schedctl.core import keys
from schedctl.core.components import Capability, register_component
from schedctl.core.config import require
from schedctl.core.errors import PackingError
from schedctl.core.packing import ContainerPlan, InstancePlan, PackingPlan
from schedctl.core.topology import TopologyDescriptor

logger = logging.getLogger(__name__)


@register_component("round_robin", Capability.PACKER)
class RoundRobinPacking:
    """Assign instances to containers 1..N in turn.

    Instances are ordered by component name, then component index, and task
    ids are assigned in that order, so the plan depends only on the topology
    and the container count.

    Example (word x2, count x1, 2 containers):
        container 1: count[0] (task 1), word[1] (task 3)
        container 2: word[0] (task 2)
    """

    def __init__(self):
        self.topology: TopologyDescriptor | None = None
        self.num_containers = 0
        self.instance_ram_mb = 0
        self.max_container_ram_mb = 0

    def initialize(self, config: Mapping[str, Any], runtime: Mapping[str, Any]) -> None:
        self.topology = require(runtime, keys.RUNTIME_TOPOLOGY_DEFINITION)
        self.num_containers = int(require(runtime, keys.RUNTIME_NUM_CONTAINERS))
        self.instance_ram_mb = int(require(config, keys.PACKING_INSTANCE_RAM_MB))
        self.max_container_ram_mb = int(require(config, keys.PACKING_CONTAINER_MAX_RAM_MB))

    def pack(self) -> PackingPlan:
        if self.topology is None:
            raise PackingError("Packer is not initialized")

        topology = self.topology
        total = topology.parallelism_total
        if self.num_containers < 1:
            raise PackingError(f"Invalid container count {self.num_containers}")
        if self.num_containers > total:
            raise PackingError(
                f"Cannot pack {total} instances of {topology.name} into {self.num_containers} containers: "
                "every container needs at least one instance"
            )

        assignments: dict[int, list[InstancePlan]] = {cid: [] for cid in range(1, self.num_containers + 1)}
        task_id = 1
        for component in sorted(topology.components, key=lambda c: c.name):
            ram_mb = component.ram_mb or self.instance_ram_mb
            for index in range(component.parallelism):
                container_id = (task_id - 1) % self.num_containers + 1
                assignments[container_id].append(
                    InstancePlan(
                        component=component.name,
                        task_id=task_id,
                        component_index=index,
                        ram_mb=ram_mb,
                    )
                )
                task_id += 1

        containers = tuple(ContainerPlan(id=cid, instances=tuple(items)) for cid, items in assignments.items())

        for container in containers:
            if container.ram_mb > self.max_container_ram_mb:
                raise PackingError(
                    f"Container {container.id} needs {container.ram_mb} MB, "
                    f"above the {self.max_container_ram_mb} MB limit"
                )

        plan = PackingPlan(topology_id=topology.id, containers=containers)
        logger.info("Packed %d instances into %d containers", plan.num_instances, plan.num_containers)
        return plan

    def close(self) -> None:
        self.topology = None
