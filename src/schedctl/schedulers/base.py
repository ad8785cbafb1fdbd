# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared executor launching for process-based schedulers."""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from schedctl.core import keys
from schedctl.core.config import require
from schedctl.core.errors import SchedulingActionError
from schedctl.core.packing import ContainerPlan, PackingPlan

logger = logging.getLogger(__name__)


@dataclass
class ManagedProcess:
    """An executor process started for one container."""

    name: str
    popen: subprocess.Popen
    log_file: Path
    container_id: int

    @property
    def is_running(self) -> bool:
        return self.popen.poll() is None

    @property
    def exit_code(self) -> int | None:
        return self.popen.returncode


class ExecutorScheduler(ABC):
    """Base class for schedulers that start one executor per container.

    Subclasses only decide how a command is launched; the command itself is
    scheduler.executor.command formatted with the container's details.
    """

    def __init__(self):
        self.config: Mapping[str, Any] = {}
        self.runtime: Mapping[str, Any] = {}
        self.working_dir: Path | None = None
        self.terminate_timeout = 10.0
        self.processes: dict[int, ManagedProcess] = {}

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging."""
        ...

    @abstractmethod
    def launch(self, command: list[str], log_file: Path, container: ContainerPlan) -> subprocess.Popen:
        """Start the executor for one container."""
        ...

    def initialize(self, config: Mapping[str, Any], runtime: Mapping[str, Any]) -> None:
        self.config = config
        self.runtime = runtime
        self.terminate_timeout = float(config.get(keys.SCHEDULER_EXECUTOR_TERMINATE_TIMEOUT, 10.0))
        self.working_dir = Path(require(config, keys.SCHEDULER_WORKING_DIRECTORY))
        try:
            self.working_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SchedulingActionError(f"Cannot create working directory {self.working_dir}: {e}") from e
        logger.info("%s scheduler working directory: %s", self.name, self.working_dir)

    def build_executor_command(self, container: ContainerPlan) -> list[str]:
        """Format the executor command template for a container."""
        template = str(require(self.config, keys.SCHEDULER_EXECUTOR_COMMAND))
        try:
            rendered = template.format(
                python=shlex.quote(sys.executable),
                container_id=container.id,
                topology_name=require(self.config, keys.TOPOLOGY_NAME),
                topology_id=require(self.config, keys.TOPOLOGY_ID),
                topology_defn=require(self.config, keys.TOPOLOGY_DEFINITION_FILE),
                package=require(self.config, keys.TOPOLOGY_PACKAGE_FILE),
                instance_distribution=require(self.runtime, keys.RUNTIME_INSTANCE_DISTRIBUTION),
            )
        except (KeyError, IndexError) as e:
            raise SchedulingActionError(f"Unknown field {e} in executor command template: {template!r}") from e
        return shlex.split(rendered)

    def schedule(self, packing: PackingPlan) -> bool:
        assert self.working_dir is not None

        for container in sorted(packing.containers, key=lambda c: c.id):
            command = self.build_executor_command(container)
            log_file = self.working_dir / f"container_{container.id}.out"

            logger.info("Starting container %d (%d instances)", container.id, len(container.instances))
            logger.info("Command: %s", shlex.join(command))
            logger.info("Log: %s", log_file)

            try:
                popen = self.launch(command, log_file, container)
            except OSError as e:
                raise SchedulingActionError(f"Failed to start container {container.id}: {e}") from e

            self.processes[container.id] = ManagedProcess(
                name=f"container_{container.id}",
                popen=popen,
                log_file=log_file,
                container_id=container.id,
            )

        logger.info("Started %d executor processes", len(self.processes))
        return True

    def close(self) -> None:
        """Terminate executors that are still running."""
        for proc in self.processes.values():
            if not proc.is_running:
                logger.info("%s already exited with code %s", proc.name, proc.exit_code)
                continue

            logger.info("Terminating %s (pid %d)", proc.name, proc.popen.pid)
            proc.popen.terminate()
            try:
                proc.popen.wait(timeout=self.terminate_timeout)
            except subprocess.TimeoutExpired:
                logger.warning("%s did not exit after %.0fs, killing", proc.name, self.terminate_timeout)
                proc.popen.kill()
                proc.popen.wait()

        self.processes.clear()
