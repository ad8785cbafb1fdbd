# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Configuration layers shared by the command line entry points."""

import os
from pathlib import Path
from typing import Any

from schedctl.core import keys
from schedctl.core.config import load_sandbox_config

DEFAULT_CONF_DIR = "conf"


def default_conf_dir() -> str:
    return os.environ.get("SCHEDCTL_CONF_DIR", DEFAULT_CONF_DIR)


def default_log_level() -> str:
    return os.environ.get("SCHEDCTL_LOG_LEVEL", "INFO")


def command_line_config(
    cluster: str,
    role: str,
    environ: str,
    conf_dir: Path,
    working_dir: Path | None = None,
) -> dict[str, Any]:
    """Build the command-line configuration layer."""
    config: dict[str, Any] = {
        keys.CLUSTER: cluster,
        keys.ROLE: role,
        keys.ENVIRON: environ,
        keys.CONF_DIRECTORY: str(conf_dir.resolve()),
    }
    if working_dir is not None:
        config[keys.WORKING_DIRECTORY] = str(working_dir.resolve())
    return config


def base_config_layers(
    cluster: str,
    role: str,
    environ: str,
    conf_dir: Path,
    working_dir: Path | None = None,
) -> list[dict[str, Any]]:
    """Cluster defaults, sandbox overrides and command-line values, in precedence order."""
    return [
        keys.cluster_defaults(),
        load_sandbox_config(conf_dir),
        command_line_config(cluster, role, environ, conf_dir, working_dir),
    ]
