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

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner, Result

from k2s_cli.addons import AddonCatalog
from k2s_cli.cli import build_cli
from k2s_cli.commands.common import CmdContext
from k2s_cli.config import CliConfig

MANIFEST_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["apiVersion", "kind", "metadata", "spec"],
    "properties": {
        "apiVersion": {"type": "string"},
        "kind": {"const": "AddonManifest"},
        "metadata": {
            "type": "object",
            "required": ["name", "description"],
            "properties": {
                "name": {"type": "string", "pattern": "^[a-z0-9-]+$"},
                "description": {"type": "string"},
            },
        },
        "spec": {
            "type": "object",
            "required": ["implementations"],
            "properties": {
                "implementations": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["name"],
                        "properties": {
                            "name": {"type": "string"},
                            "description": {"type": "string"},
                            "commands": {"type": "object"},
                        },
                    },
                },
            },
        },
    },
}

DASHBOARD_MANIFEST = """\
apiVersion: v1
kind: AddonManifest
metadata:
  name: dashboard
  description: Kubernetes dashboard
spec:
  implementations:
    - name: dashboard
      description: Kubernetes dashboard
      offline_usage:
        linux:
          curl:
            - url: https://example.com/dashboard.tar.gz
              destination: /tmp/dashboard.tar.gz
      commands:
        enable:
          cli:
            flags:
              - name: ingress
                shorthand: i
                default: none
                description: Ingress controller to use
                constraints:
                  kind: validation-set
                  validationSet: [none, nginx, traefik]
              - name: replicas
                default: 1
                constraints:
                  kind: range
                  range:
                    min: 1
                    max: 5
              - name: metrics
                default: false
                description: Enable metrics server
              - name: proxy
                default: ""
                exclusionGroup: network
              - name: offline
                default: false
                exclusionGroup: network
            examples:
              - cmd: k2s addons enable dashboard --ingress nginx
                comment: enable with ingress
          script:
            subPath: Enable.ps1
            parameterMappings:
              - cliFlagName: ingress
                scriptParameterName: Ingress
              - cliFlagName: replicas
                scriptParameterName: Replicas
              - cliFlagName: metrics
                scriptParameterName: EnableMetrics
              - cliFlagName: offline
                scriptParameterName: Offline
        disable:
          script:
            subPath: Disable.ps1
"""

INGRESS_MANIFEST = """\
apiVersion: v1
kind: AddonManifest
metadata:
  name: ingress
  description: Ingress controllers
spec:
  implementations:
    - name: nginx
      description: Ingress nginx
      commands:
        enable:
          script:
            subPath: nginx/Enable.ps1
        disable:
          script:
            subPath: nginx/Disable.ps1
    - name: traefik
      description: Ingress traefik
      commands:
        enable:
          script:
            subPath: traefik/Enable.ps1
        disable:
          script:
            subPath: traefik/Disable.ps1
"""


def write_addons_tree(addons_dir: Path, manifests: dict[str, str], schema: Any = MANIFEST_SCHEMA) -> None:
    addons_dir.mkdir(parents=True, exist_ok=True)
    if schema is not None:
        (addons_dir / "addon.manifest.schema.json").write_text(json.dumps(schema), encoding="utf-8")
    for name, content in manifests.items():
        addon_dir = addons_dir / name
        addon_dir.mkdir(parents=True, exist_ok=True)
        (addon_dir / "addon.manifest.yaml").write_text(content, encoding="utf-8")


def write_setup(config_dir: Path, **values: Any) -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "setup.json").write_text(json.dumps(values), encoding="utf-8")


@dataclass
class RecordedCall:
    script: str
    params: tuple[str, ...]
    message_type: str | None = None
    version: Any = None
    install_dir: Any = None


@dataclass
class FakeStructuredRunner:
    """Stands in for ``execute_ps_with_structured_result``."""

    payloads: list[Any] = field(default_factory=list)
    error: Exception | None = None
    calls: list[RecordedCall] = field(default_factory=list)

    def __call__(self, script, message_type, result_type, writer, *params, version, install_dir, **kwargs):
        self.calls.append(RecordedCall(script, params, message_type, version, install_dir))
        if self.error is not None:
            raise self.error
        payload = self.payloads.pop(0) if self.payloads else {}
        return result_type.model_validate(payload)


@dataclass
class FakeStreamingRunner:
    """Stands in for ``execute_ps``."""

    duration: timedelta = timedelta(seconds=3)
    calls: list[RecordedCall] = field(default_factory=list)

    def __call__(self, script, writer, version, *, install_dir):
        self.calls.append(RecordedCall(script, (), None, version, install_dir))
        return self.duration


class FakeProcess:
    """Minimal ``subprocess.Popen`` replacement with canned output."""

    def __init__(self, stdout_lines: list[str] = (), stderr_lines: list[str] = (), exit_code: int = 0) -> None:
        self.stdout = io.StringIO("".join(f"{line}\n" for line in stdout_lines))
        self.stderr = io.StringIO("".join(f"{line}\n" for line in stderr_lines))
        self.exit_code = exit_code
        self.killed = False
        self.args = None

    def wait(self, timeout: float | None = None) -> int:
        return self.exit_code

    def kill(self) -> None:
        self.killed = True


class RecordingWriter:
    def __init__(self) -> None:
        self.std: list[str] = []
        self.err: list[str] = []
        self.flushed = 0

    def write_std(self, line: str) -> None:
        self.std.append(line)

    def write_err(self, line: str) -> None:
        self.err.append(line)

    def flush(self) -> None:
        self.flushed += 1


def invoke_cli(cmd_context: CmdContext, args: list[str]) -> Result:
    return CliRunner().invoke(build_cli(cmd_context.catalog), args, obj=cmd_context)


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    logger = logging.getLogger("k2s_cli")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    root = tmp_path / "k2s"
    write_addons_tree(root / "addons", {"dashboard": DASHBOARD_MANIFEST, "ingress": INGRESS_MANIFEST})
    return root


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    return tmp_path / "config"


@pytest.fixture
def cli_config(install_dir: Path, config_dir: Path, tmp_path: Path) -> CliConfig:
    return CliConfig(install_dir=install_dir, config_dir=config_dir, log_dir=tmp_path / "logs")


@pytest.fixture
def structured_runner() -> FakeStructuredRunner:
    return FakeStructuredRunner()


@pytest.fixture
def streaming_runner() -> FakeStreamingRunner:
    return FakeStreamingRunner()


@pytest.fixture
def cmd_context(cli_config, structured_runner, streaming_runner) -> CmdContext:
    return CmdContext(
        config=cli_config,
        catalog=AddonCatalog(cli_config.install_dir),
        run_structured=structured_runner,
        run_streaming=streaming_runner,
    )
