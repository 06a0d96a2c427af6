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


"""PowerShell invocation and the structured-output protocol."""

from k2s_cli.powershell.decode import StructuredMessage, decode_message, encode_message, is_encoded_message
from k2s_cli.powershell.executor import (
    PowerShellVersion,
    ScriptExecutor,
    execute_ps,
    execute_ps_with_structured_result,
)
from k2s_cli.powershell.output import OutputWriter, PsCommandOutputWriter

__all__ = [
    "OutputWriter",
    "PowerShellVersion",
    "PsCommandOutputWriter",
    "ScriptExecutor",
    "StructuredMessage",
    "decode_message",
    "encode_message",
    "execute_ps",
    "execute_ps_with_structured_result",
    "is_encoded_message",
]
