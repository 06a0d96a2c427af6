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

"""Discovery, schema validation and caching of addon manifests."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Callable, Iterable

import yaml
from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError
from jsonschema.validators import validator_for
from pydantic import ValidationError

from k2s_cli import logger
from k2s_cli.addons.model import Addon, Addons
from k2s_cli.constants import (
    ADDONS_DIR_NAME,
    MANIFEST_FILE_NAME,
    MANIFEST_SCHEMA_FILE_NAME,
    SUPPORTED_API_VERSIONS,
)
from k2s_cli.errors import (
    ManifestParseError,
    ManifestReadError,
    ManifestValidationError,
    SchemaCompileError,
    UnsupportedApiVersionError,
)

WalkFunc = Callable[[Path], Iterable[Path]]
ReadFunc = Callable[[Path], bytes]


# ============================================================================
# Filesystem access
# ============================================================================

def _raise_walk_error(err: OSError) -> None:
    raise ManifestReadError(f"could not scan addon directory '{err.filename}': {err}") from err


def find_manifests(root: Path) -> Iterable[Path]:
    """Yield every manifest file below ``root`` in lexical walk order.

    Raises:
        ManifestReadError: If ``root`` or any directory below it cannot be listed.
    """
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames.sort()
        for filename in sorted(filenames):
            if filename == MANIFEST_FILE_NAME:
                yield Path(dirpath) / filename


def read_file(path: Path) -> bytes:
    return Path(path).read_bytes()


# ============================================================================
# Schema and content validation
# ============================================================================

def compile_schema(schema_path: Path, read_func: ReadFunc = read_file) -> Draft7Validator:
    """Load the manifest JSON schema and build a validator for it.

    The draft is taken from the schema's ``$schema`` keyword, defaulting to
    draft 7.

    Raises:
        SchemaCompileError: If the schema is missing, not JSON or not a valid schema.
    """
    try:
        schema = json.loads(read_func(schema_path))
    except (OSError, ValueError) as err:
        raise SchemaCompileError(f"could not load schema '{schema_path}': {err}") from err
    if not isinstance(schema, (dict, bool)):
        raise SchemaCompileError(f"invalid schema '{schema_path}': expected a JSON object")

    validator_cls = validator_for(schema, default=Draft7Validator)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as err:
        raise SchemaCompileError(f"invalid schema '{schema_path}': {err.message}") from err
    return validator_cls(schema)


def _format_violation(error: Any) -> str:
    location = " -> ".join(str(part) for part in error.absolute_path) or "<root>"
    return f"{location}: {error.message}"


def validate_against_schema(validator: Draft7Validator, raw: Any, manifest_path: Path) -> None:
    """Raise :class:`ManifestValidationError` listing every schema violation."""
    errors = sorted(validator.iter_errors(raw), key=lambda e: [str(part) for part in e.absolute_path])
    if errors:
        raise ManifestValidationError(str(manifest_path), [_format_violation(e) for e in errors])


def validate_content(addon: Addon) -> None:
    """Semantic checks the schema cannot express."""
    if addon.api_version not in SUPPORTED_API_VERSIONS:
        supported = "|".join(SUPPORTED_API_VERSIONS)
        raise UnsupportedApiVersionError(
            f"apiVersion '{addon.api_version}' invalid; supported versions are ({supported})")


# ============================================================================
# Loading
# ============================================================================

def load_manifest(manifest_path: Path, validator: Draft7Validator, read_func: ReadFunc = read_file) -> Addon:
    """Read, validate and parse a single manifest.

    Args:
        manifest_path: Path to an ``addon.manifest.yaml`` file.
        validator: Compiled manifest schema.
        read_func: Reads the raw file content.

    Returns:
        The addon with its directory and implementation fields derived.
    """
    try:
        data = read_func(manifest_path)
    except OSError as err:
        raise ManifestReadError(f"could not read manifest '{manifest_path}': {err}") from err

    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as err:
        raise ManifestParseError(f"could not parse manifest '{manifest_path}': {err}") from err

    validate_against_schema(validator, raw, manifest_path)

    try:
        addon = Addon.model_validate(raw)
    except ValidationError as err:
        raise ManifestParseError(f"could not parse manifest '{manifest_path}': {err}") from err

    try:
        validate_content(addon)
    except UnsupportedApiVersionError as err:
        raise UnsupportedApiVersionError(f"invalid manifest '{manifest_path}': {err}") from err

    addon.directory = Path(manifest_path).parent
    addon.derive_implementation_fields()
    return addon


def load_and_validate(
    addons_dir: Path,
    walk_func: WalkFunc = find_manifests,
    read_func: ReadFunc = read_file,
) -> Addons:
    """Load every manifest below ``addons_dir``.

    Loading stops at the first failing manifest; no partial catalog is returned.

    Raises:
        ManifestError: Any schema, read, parse or content failure.
    """
    validator = compile_schema(Path(addons_dir) / MANIFEST_SCHEMA_FILE_NAME, read_func)

    loaded: list[Addon] = []
    for manifest_path in walk_func(Path(addons_dir)):
        logger.debug("Loading addon manifest '%s'", manifest_path)
        loaded.append(load_manifest(manifest_path, validator, read_func))

    addons = Addons(loaded)
    logger.info("Loaded %d addon manifests from '%s': %s", len(addons), addons_dir, addons.names())
    return addons


class AddonCatalog:
    """Lazily loaded, process-wide view of the installed addons.

    The first successful :meth:`load` is cached and returned to every later
    caller. A failed load is not cached, so the next call scans again.

    Attributes:
        install_dir: K2s installation root.
    """

    def __init__(
        self,
        install_dir: Path,
        walk_func: WalkFunc = find_manifests,
        read_func: ReadFunc = read_file,
    ) -> None:
        self.install_dir = Path(install_dir)
        self._walk_func = walk_func
        self._read_func = read_func
        self._lock = threading.Lock()
        self._addons: Addons | None = None

    @property
    def addons_dir(self) -> Path:
        return self.install_dir / ADDONS_DIR_NAME

    @property
    def loaded(self) -> bool:
        return self._addons is not None

    def load(self) -> Addons:
        with self._lock:
            if self._addons is None:
                self._addons = load_and_validate(self.addons_dir, self._walk_func, self._read_func)
            return self._addons
