"""Loading, merging and writing kubeconfig files."""

from __future__ import annotations

import datetime as dt
import logging
import os
import re
import shutil
import stat
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import yaml  # PyYAML
except ImportError as exc:  # pragma: no cover - handled in CLI
    raise RuntimeError("PyYAML is required. Install with: pip install PyYAML") from exc

from kubectl_config_cleanup.errors import LoadError, WriteError

logger = logging.getLogger(__name__)

DEFAULT_KUBE_DIR = Path.home() / ".kube"
DEFAULT_BACKUP_DIR = DEFAULT_KUBE_DIR / "config_backup"
DEFAULT_KUBECONFIG = DEFAULT_KUBE_DIR / "config"

KUBECONFIG_ENV = "KUBECONFIG"

CONTEXTS = "contexts"
CLUSTERS = "clusters"
USERS = "users"
NAMED_SECTIONS = (CONTEXTS, CLUSTERS, USERS)

BOOL_TAG = "tag:yaml.org,2002:bool"
TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _plain_scalar_resolvers() -> dict[str, list[tuple[str, Any]]]:
    # Only true/false stay booleans; yes/no/on/off and timestamps load as text.
    resolvers = {
        first: [(tag, regexp) for tag, regexp in entries if tag not in (BOOL_TAG, TIMESTAMP_TAG)]
        for first, entries in yaml.SafeLoader.yaml_implicit_resolvers.items()
    }
    for first in "tTfF":
        resolvers.setdefault(first, []).append(
            (BOOL_TAG, re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"))
        )
    return resolvers


class KubeconfigLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps and yes/no/on/off scalars as strings."""

    yaml_implicit_resolvers = _plain_scalar_resolvers()


class KubeconfigDumper(yaml.SafeDumper):
    """SafeDumper that writes those strings back as plain scalars."""

    yaml_implicit_resolvers = _plain_scalar_resolvers()


def dump_yaml(data: Any, stream: Any = None) -> Any:
    return yaml.dump(
        data,
        stream,
        Dumper=KubeconfigDumper,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def entry_name(item: Any) -> str | None:
    if not isinstance(item, dict):
        return None
    name = item.get("name")
    if isinstance(name, str) and name.strip():
        return name
    return None


def _reference(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return ""


@dataclass(frozen=True)
class NamedContext:
    name: str
    cluster: str
    user: str
    namespace: str
    definition: dict[str, Any]
    source: Path


@dataclass
class KubeconfigFile:
    """A single kubeconfig file and its parsed document."""

    path: Path
    document: dict[str, Any]
    modified: bool = False

    def entries(self, section: str) -> list[dict[str, Any]]:
        items = self.document.get(section)
        if not isinstance(items, list):
            return []
        return [item for item in items if entry_name(item) is not None]

    def remove_named(self, section: str, names: set[str]) -> list[str]:
        """Drop named entries of ``section``; unnamed entries are kept verbatim."""
        items = self.document.get(section)
        if not isinstance(items, list) or not names:
            return []

        kept: list[Any] = []
        removed: list[str] = []
        for item in items:
            name = entry_name(item)
            if name is not None and name in names:
                removed.append(name)
            else:
                kept.append(item)

        if removed:
            self.document[section] = kept
            self.modified = True
        return removed


@dataclass
class Kubeconfig:
    """Merged view over one or more kubeconfig files.

    Files are kept in precedence order. When the same name is defined in
    several files the first definition wins, matching how kubectl merges
    the KUBECONFIG list.
    """

    files: list[KubeconfigFile] = field(default_factory=list)

    @property
    def paths(self) -> list[Path]:
        return [kubeconfig_file.path for kubeconfig_file in self.files]

    @property
    def current_context(self) -> str | None:
        for kubeconfig_file in self.files:
            value = kubeconfig_file.document.get("current-context")
            if isinstance(value, str) and value:
                return value
        return None

    def _merged(self, section: str) -> dict[str, tuple[dict[str, Any], Path]]:
        merged: dict[str, tuple[dict[str, Any], Path]] = {}
        for kubeconfig_file in self.files:
            for item in kubeconfig_file.entries(section):
                merged.setdefault(item["name"], (item, kubeconfig_file.path))
        return merged

    def contexts(self) -> list[NamedContext]:
        result: list[NamedContext] = []
        for name, (item, source) in self._merged(CONTEXTS).items():
            definition = item.get("context")
            if not isinstance(definition, dict):
                definition = {}
            result.append(
                NamedContext(
                    name=name,
                    cluster=_reference(definition.get("cluster")),
                    user=_reference(definition.get("user")),
                    namespace=_reference(definition.get("namespace")),
                    definition=definition,
                    source=source,
                )
            )
        return result

    def context_names(self) -> list[str]:
        return list(self._merged(CONTEXTS))

    def cluster_names(self) -> list[str]:
        return list(self._merged(CLUSTERS))

    def user_names(self) -> list[str]:
        return list(self._merged(USERS))

    def _remove(self, section: str, names: Iterable[str]) -> list[str]:
        wanted = {name for name in names if name}
        removed: list[str] = []
        for kubeconfig_file in self.files:
            for name in kubeconfig_file.remove_named(section, wanted):
                if name not in removed:
                    removed.append(name)
        return removed

    def remove_contexts(self, names: Iterable[str]) -> list[str]:
        return self._remove(CONTEXTS, names)

    def remove_clusters(self, names: Iterable[str]) -> list[str]:
        return self._remove(CLUSTERS, names)

    def remove_users(self, names: Iterable[str]) -> list[str]:
        return self._remove(USERS, names)

    def modified_files(self) -> list[KubeconfigFile]:
        return [kubeconfig_file for kubeconfig_file in self.files if kubeconfig_file.modified]


@dataclass
class SaveResult:
    written: list[Path]
    backups: list[Path]


def dedupe_paths(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    result: list[Path] = []
    for path in paths:
        expanded = path.expanduser()
        resolved = expanded.resolve(strict=False)
        if resolved in seen:
            continue
        seen.add(resolved)
        result.append(expanded)
    return result


def resolve_kubeconfig_paths(
    explicit: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[Path]:
    """
    Resolve the kubeconfig files to operate on.

    Precedence: explicit path, then the KUBECONFIG list, then ~/.kube/config.
    """
    if explicit:
        return [Path(explicit).expanduser()]

    if environ is None:
        environ = os.environ

    env_value = environ.get(KUBECONFIG_ENV, "")
    if env_value.strip():
        parts = [part.strip() for part in env_value.split(os.pathsep)]
        paths = dedupe_paths(Path(part) for part in parts if part)
        if paths:
            return paths

    return [DEFAULT_KUBECONFIG]


def load_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = yaml.load(handle, Loader=KubeconfigLoader)
    except FileNotFoundError as exc:
        raise LoadError(f"Missing kubeconfig file: {path}") from exc
    except OSError as exc:
        raise LoadError(f"Cannot read kubeconfig {path}: {exc}") from exc
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise LoadError(f"Malformed kubeconfig {path}: {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise LoadError(f"kubeconfig root must be a mapping (dict): {path}")

    for section in NAMED_SECTIONS:
        value = data.get(section)
        if value is not None and not isinstance(value, list):
            raise LoadError(f"kubeconfig '{section}' must be a list: {path}")
    return data


def load_kubeconfig(
    explicit: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Kubeconfig:
    paths = resolve_kubeconfig_paths(explicit, environ)

    if explicit:
        path = paths[0]
        if not path.is_file():
            raise LoadError(f"Missing kubeconfig file: {path}")
        return Kubeconfig([KubeconfigFile(path, load_yaml(path))])

    files: list[KubeconfigFile] = []
    for path in paths:
        if not path.is_file():
            logger.info(f"Skipping missing kubeconfig file: {path}")
            continue
        files.append(KubeconfigFile(path, load_yaml(path)))

    if not files:
        checked = ", ".join(str(path) for path in paths)
        raise LoadError(f"No kubeconfig file found (checked: {checked})")

    logger.info(f"Loaded kubeconfig from {', '.join(str(f.path) for f in files)}")
    return Kubeconfig(files)


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_yaml(path: Path, data: dict[str, Any]) -> None:
    """Atomically replace ``path`` with ``data`` serialized as YAML."""
    target = path.resolve(strict=False)
    try:
        ensure_parent_dir(target)
        mode = stat.S_IMODE(target.stat().st_mode) if target.exists() else None
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
        )
    except OSError as exc:
        raise WriteError(f"Failed to write kubeconfig {path}: {exc}") from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            dump_yaml(data, handle)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, target)
    except (OSError, yaml.YAMLError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise WriteError(f"Failed to write kubeconfig {path}: {exc}") from exc


def backup_file(path: Path, backup_dir: Path = DEFAULT_BACKUP_DIR) -> Path:
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = dt.datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = backup_dir / f"{path.name}.bak.{timestamp}"
    shutil.copy2(path, backup_path)
    return backup_path


def save_kubeconfig(
    config: Kubeconfig,
    backup_dir: Path | None = DEFAULT_BACKUP_DIR,
) -> SaveResult:
    """
    Write every modified file back to where it was loaded from.

    Args:
        config: The kubeconfig to save
        backup_dir: Where to copy the previous contents first; None disables backups

    Returns:
        SaveResult with the written paths and created backups
    """
    written: list[Path] = []
    backups: list[Path] = []

    for kubeconfig_file in config.modified_files():
        path = kubeconfig_file.path
        if backup_dir is not None and path.exists():
            try:
                backups.append(backup_file(path, backup_dir))
            except OSError as exc:
                raise WriteError(f"Failed to back up {path}: {exc}") from exc

        write_yaml(path, kubeconfig_file.document)
        kubeconfig_file.modified = False
        written.append(path)
        logger.info(f"Wrote {path}")

    return SaveResult(written=written, backups=backups)
