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

import os
from pathlib import Path

import pytest

from k2s_cli.addons import loader
from k2s_cli.addons.loader import AddonCatalog, compile_schema, find_manifests, load_and_validate, read_file
from k2s_cli.errors import (
    ManifestParseError,
    ManifestReadError,
    ManifestValidationError,
    SchemaCompileError,
    UnsupportedApiVersionError,
)

from conftest import DASHBOARD_MANIFEST, INGRESS_MANIFEST, write_addons_tree


def test_load_and_validate(install_dir: Path) -> None:
    addons = load_and_validate(install_dir / "addons")

    assert addons.names() == ["dashboard", "ingress"]
    dashboard, ingress = addons
    assert dashboard.directory == install_dir / "addons" / "dashboard"
    assert dashboard.implementations[0].addons_cmd_name == "dashboard"
    assert dashboard.implementations[0].offline_usage.linux.curl[0].destination == "/tmp/dashboard.tar.gz"
    assert [impl.addons_cmd_name for impl in ingress.implementations] == ["ingress nginx", "ingress traefik"]
    assert ingress.implementations[1].directory == install_dir / "addons" / "ingress" / "traefik"

    flag = dashboard.implementations[0].commands["enable"].cli.find_flag("replicas")
    assert flag.default == 1
    assert str(flag.constraints) == "[1,5]"


def test_find_manifests_walks_in_lexical_order(tmp_path: Path) -> None:
    write_addons_tree(tmp_path, {"zeta": "", "alpha": "", "alpha/sub": ""}, schema=None)
    (tmp_path / "alpha" / "other.yaml").write_text("", encoding="utf-8")

    found = [path.relative_to(tmp_path).as_posix() for path in find_manifests(tmp_path)]
    assert found == ["alpha/addon.manifest.yaml", "alpha/sub/addon.manifest.yaml", "zeta/addon.manifest.yaml"]


def test_empty_addons_dir_loads_no_addons(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {})
    assert len(load_and_validate(tmp_path / "addons")) == 0


def test_missing_schema(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {"dashboard": DASHBOARD_MANIFEST}, schema=None)
    with pytest.raises(SchemaCompileError, match="could not load schema"):
        load_and_validate(tmp_path / "addons")


def test_invalid_schema(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {}, schema={"type": 12})
    with pytest.raises(SchemaCompileError, match="invalid schema"):
        compile_schema(tmp_path / "addons" / "addon.manifest.schema.json")


def test_schema_violations_are_listed(tmp_path: Path) -> None:
    manifest = DASHBOARD_MANIFEST.replace("kind: AddonManifest", "kind: Other").replace(
        "name: dashboard\n  description", "name: Dashboard\n  description")
    write_addons_tree(tmp_path / "addons", {"dashboard": manifest})

    with pytest.raises(ManifestValidationError) as exc_info:
        load_and_validate(tmp_path / "addons")

    err = exc_info.value
    assert str(err).startswith("validation failed for manifest '")
    assert len(err.violations) == 2
    assert err.violations[0].startswith("kind: ")
    assert err.violations[1].startswith("metadata -> name: ")


def test_unsupported_api_version(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {"dashboard": DASHBOARD_MANIFEST.replace("apiVersion: v1", "apiVersion: v2")})
    with pytest.raises(UnsupportedApiVersionError, match=r"apiVersion 'v2' invalid; supported versions are \(v1\)"):
        load_and_validate(tmp_path / "addons")


def test_invalid_yaml(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {"broken": "metadata: [unclosed\n"})
    with pytest.raises(ManifestParseError, match="could not parse manifest"):
        load_and_validate(tmp_path / "addons")


def test_invalid_flag_default_is_a_parse_error(tmp_path: Path) -> None:
    manifest = DASHBOARD_MANIFEST.replace("default: none", "default: [none]")
    write_addons_tree(tmp_path / "addons", {"dashboard": manifest})
    with pytest.raises(ManifestParseError):
        load_and_validate(tmp_path / "addons")


def test_loading_stops_at_first_failure(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {
        "a-broken": INGRESS_MANIFEST.replace("apiVersion: v1", "apiVersion: v0"),
        "dashboard": DASHBOARD_MANIFEST,
    })
    read_paths = []

    def _read(path: Path) -> bytes:
        read_paths.append(path.name)
        return read_file(path)

    with pytest.raises(UnsupportedApiVersionError):
        load_and_validate(tmp_path / "addons", read_func=_read)
    assert read_paths == ["addon.manifest.schema.json", "addon.manifest.yaml"]


def test_read_error(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {})

    def _walk(root: Path):
        yield root / "ghost" / "addon.manifest.yaml"

    with pytest.raises(ManifestReadError, match="could not read manifest"):
        load_and_validate(tmp_path / "addons", walk_func=_walk)


def test_catalog_caches_successful_load(install_dir: Path) -> None:
    walks = []

    def _walk(root: Path):
        walks.append(root)
        return find_manifests(root)

    catalog = AddonCatalog(install_dir, walk_func=_walk)
    assert not catalog.loaded

    first = catalog.load()
    second = catalog.load()

    assert first is second
    assert catalog.loaded
    assert walks == [install_dir / "addons"]


def test_catalog_does_not_cache_failed_load(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {"dashboard": DASHBOARD_MANIFEST}, schema=None)
    catalog = AddonCatalog(tmp_path)

    with pytest.raises(SchemaCompileError):
        catalog.load()
    assert not catalog.loaded

    write_addons_tree(tmp_path / "addons", {})
    assert catalog.load().names() == ["dashboard"]


def test_schema_violation_after_valid_manifest_fails_whole_load(tmp_path: Path) -> None:
    write_addons_tree(tmp_path / "addons", {
        "a": DASHBOARD_MANIFEST,
        "b": DASHBOARD_MANIFEST.replace("kind: AddonManifest", "kind: Other"),
    })
    result = None

    with pytest.raises(ManifestValidationError) as exc_info:
        result = load_and_validate(tmp_path / "addons")

    assert str(tmp_path / "addons" / "b" / "addon.manifest.yaml") in str(exc_info.value)
    assert result is None


def test_unreadable_directory_fails_whole_load(tmp_path: Path, monkeypatch) -> None:
    write_addons_tree(tmp_path / "addons", {"dashboard": DASHBOARD_MANIFEST, "zz": INGRESS_MANIFEST})
    locked = tmp_path / "addons" / "zz"
    real_scandir = os.scandir

    def _scandir(path):
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", _scandir)

    with pytest.raises(ManifestReadError, match="could not scan addon directory") as exc_info:
        load_and_validate(tmp_path / "addons")
    assert str(locked) in str(exc_info.value)


def test_unsupported_api_version_lists_versions_with_pipes(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(loader, "SUPPORTED_API_VERSIONS", ("v1", "v2"))
    write_addons_tree(tmp_path / "addons", {"dashboard": DASHBOARD_MANIFEST.replace("apiVersion: v1", "apiVersion: v3")})

    with pytest.raises(UnsupportedApiVersionError, match=r"supported versions are \(v1\|v2\)"):
        load_and_validate(tmp_path / "addons")
