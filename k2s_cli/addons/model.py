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

"""Addon manifest model and flag constraint validation."""

from __future__ import annotations

import math
import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Iterable, Literal, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
)

from k2s_cli.constants import CONSTRAINT_KIND_RANGE, CONSTRAINT_KIND_VALIDATION_SET
from k2s_cli.errors import ConstraintError, ImageExtractionError


class _ManifestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def format_value(value: Any) -> str:
    """Render a flag value the way the scripts and help texts expect it.

    Booleans are lower-case and integral floats drop their fraction, so a
    ``range`` of ``1.0..10.0`` renders as ``[1,10]``.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and math.isfinite(value) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


# ============================================================================
# Constraints
# ============================================================================

class ValidationSetConstraint(_ManifestModel):
    """Only the listed values are accepted (exact, case-sensitive match)."""

    kind: Literal["validation-set"]
    validation_set: list[str] = Field(alias="validationSet")

    def validate_value(self, value: Any) -> None:
        string_value = format_value(value)
        if string_value not in self.validation_set:
            raise ConstraintError(f"invalid value '{string_value}', valid values are {self}")

    def __str__(self) -> str:
        return f"[{'|'.join(self.validation_set)}]"


class NumberRange(_ManifestModel):
    min: float
    max: float


class RangeConstraint(_ManifestModel):
    """Numeric values between ``min`` and ``max``, both inclusive."""

    kind: Literal["range"]
    number_range: NumberRange = Field(alias="range")

    def validate_value(self, value: Any) -> None:
        text = format_value(value)
        # float() also takes digit separators and padding, which are not numbers here
        if "_" in text or text != text.strip():
            raise ConstraintError(f"'{text}' is not a number")
        try:
            number = float(text)
        except ValueError as err:
            raise ConstraintError(f"'{text}' is not a number") from err
        if not self.number_range.min <= number <= self.number_range.max:
            raise ConstraintError(f"'{text}' is out of range {self}")

    def __str__(self) -> str:
        return f"[{format_value(self.number_range.min)},{format_value(self.number_range.max)}]"


Constraint = Annotated[Union[ValidationSetConstraint, RangeConstraint], Field(discriminator="kind")]

_CONSTRAINT_PAYLOAD_KEYS = {
    CONSTRAINT_KIND_VALIDATION_SET: ("validationSet", "validation_set", "validation set"),
    CONSTRAINT_KIND_RANGE: ("range", "number_range", "range"),
}


def validate_constraint(constraint: ValidationSetConstraint | RangeConstraint | None, value: Any) -> None:
    """Check ``value`` against an optional constraint.

    Raises:
        ConstraintError: If the value does not satisfy the constraint.
    """
    if constraint is None:
        return
    constraint.validate_value(value)


def render_constraint(constraint: ValidationSetConstraint | RangeConstraint | None) -> str:
    """Help-text suffix for a constraint, empty when there is none."""
    if constraint is None:
        return ""
    return str(constraint)


# ============================================================================
# CLI definitions
# ============================================================================

class FlagType(str, Enum):
    STRING = "string"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"


class CliFlag(_ManifestModel):
    """A flag generated on an addon command.

    The type of ``default`` decides the flag type; anything other than a
    string, bool, int or float is rejected while the manifest is parsed.
    """

    name: str
    shorthand: str | None = None
    default: Union[StrictBool, StrictInt, StrictFloat, StrictStr]
    description: str | None = None
    constraints: Constraint | None = None
    exclusion_group: str | None = Field(default=None, alias="exclusionGroup")

    @field_validator("constraints", mode="before")
    @classmethod
    def _check_constraint_payload(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        kind = value.get("kind")
        if kind not in _CONSTRAINT_PAYLOAD_KEYS:
            raise ValueError(f"unknown constraint type '{kind}'")
        alias, field_name, label = _CONSTRAINT_PAYLOAD_KEYS[kind]
        if value.get(alias) is None and value.get(field_name) is None:
            raise ValueError(f"{label} must not be nil")
        return value

    @property
    def flag_type(self) -> FlagType:
        if isinstance(self.default, bool):
            return FlagType.BOOL
        if isinstance(self.default, int):
            return FlagType.INT
        if isinstance(self.default, float):
            return FlagType.FLOAT
        return FlagType.STRING

    def full_description(self) -> str:
        parts = [part for part in (self.description or "", render_constraint(self.constraints)) if part]
        return " ".join(parts)

    def validate_value(self, value: Any) -> None:
        validate_constraint(self.constraints, value)


class CliExample(_ManifestModel):
    cmd: str
    comment: str | None = None

    def __str__(self) -> str:
        comment = f"  // {self.comment}\n" if self.comment is not None else ""
        return f"{comment}  {self.cmd}\n"


class AddonCliConfig(_ManifestModel):
    flags: list[CliFlag] = Field(default_factory=list)
    examples: list[CliExample] = Field(default_factory=list)

    def find_flag(self, name: str) -> CliFlag | None:
        return next((flag for flag in self.flags if flag.name == name), None)

    def check_exclusion_groups(self, set_flag_names: Iterable[str]) -> None:
        """Fail if more than one flag of the same exclusion group was set.

        Raises:
            ConstraintError: Naming the conflicting flags.
        """
        groups: dict[str, list[str]] = {}
        for name in set_flag_names:
            flag = self.find_flag(name)
            if flag is None or flag.exclusion_group is None:
                continue
            groups.setdefault(flag.exclusion_group, []).append(name)
        for names in groups.values():
            if len(names) > 1:
                raise ConstraintError(f"flags {', '.join(names)} are mutually exclusive")


class ParameterMapping(_ManifestModel):
    cli_flag_name: str = Field(alias="cliFlagName")
    script_parameter_name: str = Field(alias="scriptParameterName")


class ScriptConfig(_ManifestModel):
    sub_path: str = Field(alias="subPath")
    parameter_mappings: list[ParameterMapping] = Field(default_factory=list, alias="parameterMappings")

    def script_parameter_for(self, flag_name: str) -> str | None:
        for mapping in self.parameter_mappings:
            if mapping.cli_flag_name == flag_name:
                return mapping.script_parameter_name
        return None


class AddonCmd(_ManifestModel):
    cli: AddonCliConfig | None = None
    script: ScriptConfig


# ============================================================================
# Offline usage
# ============================================================================

class CurlPackage(_ManifestModel):
    url: str
    destination: str


class LinuxResources(_ManifestModel):
    deb: list[str] = Field(default_factory=list)
    curl: list[CurlPackage] = Field(default_factory=list)
    additional_images: list[str] = Field(default_factory=list, alias="additionalImages")
    additional_images_files: list[str] = Field(default_factory=list, alias="additionalImagesFiles")


class WindowsResources(_ManifestModel):
    curl: list[CurlPackage] = Field(default_factory=list)
    additional_images: list[str] = Field(default_factory=list, alias="additionalImages")


class OfflineUsage(_ManifestModel):
    linux: LinuxResources = Field(default_factory=LinuxResources)
    windows: WindowsResources = Field(default_factory=WindowsResources)


_IMAGE_REF_PATTERN = re.compile(r"(?:--[a-zA-Z-]+=|=)?([a-zA-Z0-9.\-_/]+/[a-zA-Z0-9.\-_/]+:[a-zA-Z0-9.\-_]+)")
_IMAGE_ARG_KEYS = ("args", "command")


def find_images(content: Any, parent_key: str = "") -> Iterable[str]:
    """Yield container images referenced in parsed Kubernetes YAML.

    Every non-empty ``image:`` value counts; strings are only searched for
    ``registry/name:tag`` references below ``args`` or ``command``.
    """
    if isinstance(content, dict):
        for key, value in content.items():
            if key == "image" and isinstance(value, str) and value:
                yield value
            yield from find_images(value, str(key))
    elif isinstance(content, list):
        for item in content:
            yield from find_images(item, parent_key)
    elif isinstance(content, str) and parent_key in _IMAGE_ARG_KEYS:
        yield from _IMAGE_REF_PATTERN.findall(content)


# ============================================================================
# Addon
# ============================================================================

class Implementation(_ManifestModel):
    """A named variant of an addon.

    ``directory``, ``addons_cmd_name`` and ``export_directory_name`` are not
    part of the manifest; the loader derives them from the addon's location.
    """

    name: str
    description: str = ""
    commands: dict[str, AddonCmd] | None = None
    offline_usage: OfflineUsage = Field(default_factory=OfflineUsage)
    directory: Path | None = Field(default=None, exclude=True)
    addons_cmd_name: str = Field(default="", exclude=True)
    export_directory_name: str = Field(default="", exclude=True)

    def extract_images_from_files(self) -> list[str]:
        """Images referenced by the Linux ``additionalImagesFiles``, without duplicates.

        Relative file paths are resolved against the implementation directory,
        so shared manifests can be reached with ``../`` paths. Every YAML
        document of a file is searched.

        Raises:
            ImageExtractionError: If a file cannot be read or parsed.
        """
        images: list[str] = []
        for file_path in self.offline_usage.linux.additional_images_files:
            path = Path(file_path)
            if not path.is_absolute():
                if self.directory is None:
                    raise ValueError(f"directory of implementation '{self.name}' is not set")
                path = self.directory / path
            try:
                documents = list(yaml.safe_load_all(path.read_bytes()))
            except (OSError, yaml.YAMLError) as err:
                raise ImageExtractionError(f"failed to extract images from {file_path}: {err}") from err
            for document in documents:
                images.extend(find_images(document))
        return list(dict.fromkeys(images))


class AddonMetadata(_ManifestModel):
    name: str
    description: str = ""


class AddonSpec(_ManifestModel):
    implementations: list[Implementation] = Field(default_factory=list)


class Addon(_ManifestModel):
    api_version: str = Field(alias="apiVersion")
    kind: str = ""
    metadata: AddonMetadata
    spec: AddonSpec = Field(default_factory=AddonSpec)
    directory: Path | None = Field(default=None, exclude=True)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def implementations(self) -> list[Implementation]:
        return self.spec.implementations

    def find_implementation(self, name: str) -> Implementation | None:
        return next((impl for impl in self.implementations if impl.name == name), None)

    def script_path(self, command: AddonCmd) -> Path:
        """Absolute path of a command's script; ``subPath`` is relative to the addon directory."""
        if self.directory is None:
            raise ValueError(f"directory of addon '{self.name}' is not set")
        return self.directory / command.script.sub_path

    def derive_implementation_fields(self) -> None:
        """Set the location-derived fields of every implementation.

        An implementation named like the addon lives in the addon directory;
        any other lives in a sub-directory named after the implementation.
        """
        for impl in self.implementations:
            if impl.name != self.name:
                impl.directory = self.directory / impl.name if self.directory is not None else None
                impl.export_directory_name = f"{self.name}_{impl.name}"
                impl.addons_cmd_name = f"{self.name} {impl.name}"
            else:
                impl.directory = self.directory
                impl.export_directory_name = self.name
                impl.addons_cmd_name = self.name


class Addons(tuple):
    """Immutable, ordered collection of loaded addons."""

    def find(self, name: str) -> Addon | None:
        return next((addon for addon in self if addon.name == name), None)

    def names(self) -> list[str]:
        return [addon.name for addon in self]

    def sorted(self) -> Addons:
        return Addons(sorted(self, key=lambda addon: addon.name))
