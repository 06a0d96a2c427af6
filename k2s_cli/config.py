# /*
# Copyright 2026 The K2s Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""CLI settings and the setup config written by the installer."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from k2s_cli import logger
from k2s_cli.constants import (
    ADDONS_DIR_NAME,
    DEFAULT_CONFIG_DIR,
    LOG_FILE_NAME,
    SETUP_CONFIG_FILE_NAME,
)
from k2s_cli.errors import SystemInCorruptedStateError, SystemNotInstalledError
from k2s_cli.powershell.executor import PowerShellVersion


# ============================================================================
# CLI settings
# ============================================================================

class CliConfig(BaseSettings):
    """Host-side CLI settings, auto-loaded from K2S_* env vars.

    Attributes:
        install_dir: K2s installation root containing ``addons`` and ``lib``.
        config_dir: Directory holding ``setup.json``.
        log_dir: Directory for the CLI log file, defaults to ``<config_dir>/logs``.
        log_level: Minimum level written to the log file.
    """

    model_config = SettingsConfigDict(env_prefix="K2S_", extra="ignore")

    install_dir: Path = Field(default_factory=Path.cwd)
    config_dir: Path = Path(DEFAULT_CONFIG_DIR)
    log_dir: Path | None = None
    log_level: str = Field(default="info", pattern=r"^(?i:debug|info|warn|warning|error)$")

    @property
    def addons_dir(self) -> Path:
        return self.install_dir / ADDONS_DIR_NAME

    @property
    def log_file(self) -> Path:
        log_dir = self.log_dir if self.log_dir is not None else self.config_dir / "logs"
        return log_dir / LOG_FILE_NAME


# ============================================================================
# Setup config
# ============================================================================

class SetupName(str, Enum):
    K2S = "k2s"
    MULTI_VM_K8S = "MultiVMK8s"
    BUILD_ONLY_ENV = "BuildOnlyEnv"


class SetupConfig(BaseModel):
    """Content of ``setup.json`` as written by the install scripts."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    setup_name: str = Field(default="", alias="SetupType")
    registries: list[str] | None = Field(default=None, alias="Registries")
    linux_only: bool = Field(default=False, alias="LinuxOnly")
    version: str = Field(default="", alias="Version")
    control_plane_node_hostname: str = Field(default="", alias="ControlPlaneNodeHostname")
    corrupted: bool = Field(default=False, alias="Corrupted")


def read_setup_config(config_dir: Path) -> SetupConfig:
    """Read the setup config from ``<config_dir>/setup.json``.

    Args:
        config_dir: K2s config directory.

    Returns:
        The parsed setup config.

    Raises:
        SystemNotInstalledError: If the config file does not exist.
        SystemInCorruptedStateError: If the setup is flagged as corrupted.
        ValueError: If the file cannot be read or parsed.
    """
    config_path = Path(config_dir) / SETUP_CONFIG_FILE_NAME
    try:
        raw = config_path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as err:
        logger.info("Setup config file '%s' not found, assuming setup is not installed", config_path)
        raise SystemNotInstalledError() from err
    except OSError as err:
        raise ValueError(f"error occurred while loading setup config file '{config_path}': {err}") from err

    try:
        config = SetupConfig.model_validate_json(raw)
    except ValidationError as err:
        raise ValueError(f"error occurred while loading setup config file '{config_path}': {err}") from err

    if config.corrupted:
        raise SystemInCorruptedStateError()
    return config


def determine_ps_version(config: SetupConfig) -> PowerShellVersion:
    """Pick the PowerShell version the setup's scripts require."""
    if config.setup_name == SetupName.MULTI_VM_K8S.value and not config.linux_only:
        return PowerShellVersion.V7
    return PowerShellVersion.V5


def default_ps_version() -> PowerShellVersion:
    return PowerShellVersion.V5
