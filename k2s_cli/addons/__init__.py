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

"""Addon manifest model and catalog loader."""

from k2s_cli.addons.loader import AddonCatalog, load_and_validate
from k2s_cli.addons.model import Addon, Addons, CliFlag, Implementation

__all__ = ["Addon", "AddonCatalog", "Addons", "CliFlag", "Implementation", "load_and_validate"]
