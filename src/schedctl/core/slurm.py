# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
SLURM helpers for the slurm scheduler.

This module provides:
- Allocation: current_job_id, allocated_nodes
- Job steps: SrunStep (one executor container as one srun step), launch_srun_step
"""

import dataclasses
import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from . import keys

logger = logging.getLogger(__name__)


# ============================================================================
# Allocation
# ============================================================================


def current_job_id() -> str | None:
    """ID of the SLURM job this process runs in, if any."""
    return os.environ.get("SLURM_JOB_ID") or os.environ.get("SLURM_JOBID")


def allocated_nodes() -> list[str]:
    """Hostnames of the current allocation, expanded from SLURM_NODELIST.

    Returns:
        Hostnames, or an empty list outside SLURM or when a ranged list
        cannot be expanded
    """
    nodelist = os.environ.get("SLURM_NODELIST", "")
    if not nodelist:
        return []

    # Ranged lists like node[01-04] need scontrol to expand
    try:
        result = subprocess.run(
            ["scontrol", "show", "hostnames", nodelist],
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        if "[" in nodelist:
            logger.warning("Cannot expand SLURM_NODELIST %s without scontrol", nodelist)
            return []
        return nodelist.split(",")
    return result.stdout.split()


# ============================================================================
# Job steps
# ============================================================================


@dataclasses.dataclass(frozen=True)
class SrunStep:
    """srun options for one job step.

    Usage:
        step = SrunStep.from_config(config).for_container(1, Path("/work/container_1.out"))
        proc = launch_srun_step(step, ["schedctl-executor", "--shard", "1"])
    """

    output: str | None = None
    nodelist: tuple[str, ...] = ()
    container_image: str | None = None
    container_mounts: Mapping[str, str] = dataclasses.field(default_factory=dict)
    environment: Mapping[str, str] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SrunStep":
        """Step options shared by every container, from scheduler.slurm.* keys."""
        mounts = config.get(keys.SCHEDULER_SLURM_CONTAINER_MOUNTS) or {}
        environment = config.get(keys.SCHEDULER_SLURM_ENVIRONMENT) or {}
        image = config.get(keys.SCHEDULER_SLURM_CONTAINER_IMAGE)
        nodelist = config.get(keys.SCHEDULER_SLURM_NODELIST) or ()
        if isinstance(nodelist, str):
            nodelist = nodelist.split(",")
        return cls(
            nodelist=tuple(str(node).strip() for node in nodelist if str(node).strip()),
            container_image=str(image) if image else None,
            container_mounts={str(host): str(target) for host, target in mounts.items()},
            environment={str(name): str(value) for name, value in environment.items()},
        )

    def for_container(self, container_id: int, output: Path) -> "SrunStep":
        """Copy of this step for one container, logging to output.

        With a nodelist, containers are pinned round-robin to its nodes.
        """
        nodelist = self.nodelist
        if nodelist:
            nodelist = (nodelist[(container_id - 1) % len(nodelist)],)
        return dataclasses.replace(
            self,
            output=str(output),
            nodelist=nodelist,
            environment={**self.environment, "SCHEDCTL_CONTAINER_ID": str(container_id)},
        )

    def argv(self, command: Sequence[str]) -> list[str]:
        """Full srun command line running command as this step."""
        argv = ["srun", "--overlap", "--nodes", "1", "--ntasks", "1"]
        if self.nodelist:
            argv += ["--nodelist", ",".join(self.nodelist)]
        if self.output:
            argv += ["--output", self.output]
        argv += self._container_flags()

        # Exports go inside the step so they apply within the container
        script = [f"export {name}={shlex.quote(value)}" for name, value in self.environment.items()]
        script.append(shlex.join(command))
        return argv + ["bash", "-c", " && ".join(script)]

    def _container_flags(self) -> list[str]:
        if not self.container_image:
            return []

        flags = [
            "--container-image",
            self.container_image,
            "--no-container-entrypoint",
            "--no-container-mount-home",
        ]
        if self.container_mounts:
            mounts = ",".join(f"{host}:{target}" for host, target in self.container_mounts.items())
            flags += ["--container-mounts", mounts]
        return flags


def launch_srun_step(step: SrunStep, command: Sequence[str]) -> subprocess.Popen:
    """Start command as an srun step. Output goes to step.output when set."""
    argv = step.argv(command)
    logger.debug("Starting srun: %s", shlex.join(argv))

    if step.output:
        return subprocess.Popen(argv)
    return subprocess.Popen(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT)
