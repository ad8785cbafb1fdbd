# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
SLURM scheduler.

Runs inside an existing allocation: each container becomes one srun step,
optionally inside a container image (pyxis/enroot flags).

Example scheduler.yaml:
    scheduler.class: slurm
    scheduler.slurm.container.image: /containers/runtime.sqsh
    scheduler.slurm.container.mounts:
      /shared/packages: /packages
    scheduler.slurm.environment:
      JAVA_HOME: /usr/lib/jvm/default
    scheduler.slurm.nodelist: [node01, node02]

Containers are pinned round-robin to scheduler.slurm.nodelist, or to the
allocation's nodes when no nodelist is configured.
"""

import dataclasses
import logging
import subprocess
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from schedctl.core.components import Capability, register_component
from schedctl.core.errors import SchedulingActionError
from schedctl.core.packing import ContainerPlan
from schedctl.core.slurm import SrunStep, allocated_nodes, current_job_id, launch_srun_step

from .base import ExecutorScheduler

logger = logging.getLogger(__name__)


@register_component("slurm", Capability.SCHEDULER)
class SlurmScheduler(ExecutorScheduler):
    def __init__(self):
        super().__init__()
        self.job_id: str | None = None
        self.step = SrunStep()

    @property
    def name(self) -> str:
        return "SLURM"

    def initialize(self, config: Mapping[str, Any], runtime: Mapping[str, Any]) -> None:
        self.job_id = current_job_id()
        if not self.job_id:
            raise SchedulingActionError("Not running in SLURM (SLURM_JOB_ID not set)")
        super().initialize(config, runtime)
        self.step = SrunStep.from_config(config)

        nodes = allocated_nodes()
        if self.step.nodelist:
            outside = [node for node in self.step.nodelist if nodes and node not in nodes]
            if outside:
                raise SchedulingActionError(
                    f"Nodes {', '.join(outside)} are not in SLURM job {self.job_id} ({', '.join(nodes)})"
                )
        elif nodes:
            self.step = dataclasses.replace(self.step, nodelist=tuple(nodes))

        logger.info(
            "Scheduling into SLURM job %s on %d nodes: %s",
            self.job_id,
            len(self.step.nodelist),
            ",".join(self.step.nodelist) or "any",
        )

    def launch(self, command: list[str], log_file: Path, container: ContainerPlan) -> subprocess.Popen:
        return launch_srun_step(self.step.for_container(container.id, log_file), command)
