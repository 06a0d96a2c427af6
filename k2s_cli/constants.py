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

"""Constants shared by the addon catalog, the PowerShell executor and the commands."""

from __future__ import annotations

# -- Addon catalog layout --
ADDONS_DIR_NAME = "addons"
MANIFEST_FILE_NAME = "addon.manifest.yaml"
MANIFEST_SCHEMA_FILE_NAME = "addon.manifest.schema.json"
SUPPORTED_API_VERSIONS = ("v1",)

# -- Constraint kinds --
CONSTRAINT_KIND_VALIDATION_SET = "validation-set"
CONSTRAINT_KIND_RANGE = "range"

# -- Structured output protocol --
MESSAGE_MARKER = "#pm#"
MESSAGE_FIELD_SEPARATOR = "#"
MESSAGE_FIELD_COUNT = 4
MESSAGE_TYPE_CMD_RESULT = "CmdResult"
MESSAGE_TYPE_ENABLED_ADDONS = "EnabledAddons"
MESSAGE_TYPE_ADDON_STATUS = "AddonStatus"

# -- PowerShell --
PS5_EXECUTABLE = "powershell"
PS7_EXECUTABLE = "pwsh"
PS7_INSTALL_HINT_URL = "https://learn.microsoft.com/en-us/powershell/scripting/install/installing-powershell-on-windows"
EXEC_SCRIPT_SUB_PATH = r"lib\scripts\k2s\base\Invoke-ExecScript.ps1"
K2S_START_SCRIPT_SUB_PATH = r"smallsetup\StartK8s.ps1"
K2S_STOP_SCRIPT_SUB_PATH = r"smallsetup\StopK8s.ps1"
MULTIVM_START_SCRIPT_SUB_PATH = r"smallsetup\multivm\Start_MultiVMK8sSetup.ps1"
MULTIVM_STOP_SCRIPT_SUB_PATH = r"smallsetup\multivm\Stop_MultiVMK8sSetup.ps1"
ENABLED_ADDONS_SCRIPT = "Get-EnabledAddons.ps1"
ADDON_STATUS_SCRIPT = "Get-Status.ps1"
EXPORT_ADDONS_SCRIPT = "Export.ps1"
PROCESS_POLL_INTERVAL_SECONDS = 0.1
KILL_GRACE_PERIOD_SECONDS = 2.0

# -- Setup config --
SETUP_CONFIG_FILE_NAME = "setup.json"
DEFAULT_CONFIG_DIR = r"C:\ProgramData\K2s"
LOG_FILE_NAME = "k2s.log"
ERROR_LINE_BUFFER_LIMIT = 100

# -- CLI flags --
OUTPUT_FLAG_NAME = "output"
OUTPUT_FLAG_SHORTHAND = "o"
OUTPUT_FLAG_USAGE = "Show all logs in terminal"
OUTPUT_FORMAT_USAGE = "Output format modifier. Currently supported: 'json' for output as JSON structure"
JSON_OUTPUT_OPTION = "json"
SHOW_LOGS_PARAM = "-ShowLogs"
SPINNER_TEXT = "Gathering information.."

# -- Failure codes and messages --
CODE_SYSTEM_NOT_INSTALLED = "system-not-installed"
CODE_SYSTEM_IN_CORRUPTED_STATE = "system-in-corrupted-state"
CODE_FUNCTIONALITY_NOT_AVAILABLE = "functionality-not-available"
MSG_SYSTEM_NOT_INSTALLED = (
    "You have not installed K2s setup yet, please start the installation with command 'k2s.exe install' first"
)
MSG_SYSTEM_IN_CORRUPTED_STATE = (
    "Errors occurred during K2s setup. K2s cluster is in corrupted state. Please uninstall and reinstall K2s cluster."
)
