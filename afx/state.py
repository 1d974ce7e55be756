"""State file handling and change detection.

The state file records every package afx has installed. Opening it against
the configured packages classifies each package into exactly one change set:

- additions:   configured, never installed
- readditions: installed, but some recorded path has gone missing
- changes:     installed with a different release version than configured
- deletions:   installed, but no longer configured
- no_changes:  everything else that is configured

Resources are keyed by a stable ID derived from package coordinates, not by
name, so renaming a package in the config does not trigger a reinstall.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from .errors import StateError

_logging = logging.getLogger(__name__)


@dataclass
class Resource:
    id: str
    name: str
    home: str
    type: str
    version: str = ""
    paths: list[str] = field(default_factory=list)

    def exists(self) -> bool:
        """Return True when every recorded path is present on disk."""
        if not self.paths:
            return False
        return all(os.path.exists(path) for path in self.paths)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Resource":
        if not isinstance(data, dict):
            raise StateError(f"resource must be an object, got {type(data).__name__}")
        try:
            return cls(
                id=data["id"],
                name=data.get("name", ""),
                home=data.get("home", ""),
                type=data.get("type", ""),
                version=data.get("version") or "",
                paths=list(data.get("paths") or []),
            )
        except KeyError as e:
            raise StateError(f"resource is missing field {e}") from e


class Resourcer(Protocol):
    def resource(self) -> Resource: ...


def names(resources: Iterable[Resource]) -> list[str]:
    return [r.name for r in resources]


class State:
    """In-memory view of the state file plus the computed change sets.

    The change sets are computed once in ``open`` and stay frozen for the
    rest of the run; ``add``, ``update`` and ``remove`` only touch the
    persisted map and are serialised by a lock.
    """

    def __init__(self, path: str | os.PathLike, packages: Iterable[Resourcer] = ()):
        self.path = Path(path)
        self.resources: dict[str, Resource] = {}
        self.packages: dict[str, Resource] = {}
        for pkg in packages:
            resource = pkg.resource()
            self.packages[resource.id] = resource
        self._lock = threading.RLock()

        self.additions: list[Resource] = []
        self.readditions: list[Resource] = []
        self.changes: list[Resource] = []
        self.deletions: list[Resource] = []
        self.no_changes: list[Resource] = []

    @classmethod
    def open(cls, path: str | os.PathLike, packages: Iterable[Resourcer] = ()) -> "State":
        """Read the state file, classify packages, refresh drift and save.

        A missing state file is treated as empty.
        """
        state = cls(path, packages)
        state.resources = state._read()
        state._classify()

        if not state.refresh():
            _logging.info("state: skip refreshing because some packages need operations")

        state._save()
        return state

    def _read(self) -> dict[str, Resource]:
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except NotADirectoryError as e:
            raise StateError(
                f"{self.path}: a parent of the state file is a regular file (must be a directory)"
            ) from e
        except OSError as e:
            raise StateError(f"{self.path}: failed to read state file: {e}") from e
        return self._decode(content)

    def _decode(self, content: str) -> dict[str, Resource]:
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise StateError(f"{self.path}: malformed state file: {e}") from e
        if not isinstance(data, dict):
            raise StateError(f"{self.path}: state must be a JSON object")
        raw = data.get("resources") or {}
        if not isinstance(raw, dict):
            raise StateError(f"{self.path}: 'resources' must be an object")
        resources = {}
        for key, value in raw.items():
            resource = Resource.from_dict(value)
            resources[resource.id or key] = resource
        return resources

    def _classify(self) -> None:
        additions, readditions, changes = [], [], []
        for pkg_id, live in self.packages.items():
            recorded = self.resources.get(pkg_id)
            if recorded is None:
                additions.append(live)
            elif not recorded.exists():
                readditions.append(live)
            elif recorded.version and recorded.version != live.version:
                changes.append(live)
        classified = {r.id for r in additions + readditions + changes}

        self.additions = additions
        self.readditions = readditions
        self.changes = changes
        self.no_changes = [r for r in self.packages.values() if r.id not in classified]
        self.deletions = [r for r in self.resources.values() if r.id not in self.packages]

        _logging.info(f"state additions: ({len(additions)}) {names(additions)}")
        _logging.info(f"state readditions: ({len(readditions)}) {names(readditions)}")
        _logging.info(f"state deletions: ({len(self.deletions)}) {names(self.deletions)}")
        _logging.info(f"state changes: ({len(changes)}) {names(changes)}")
        _logging.info(f"state unchanges: ({len(self.no_changes)})")

    def has_pending(self) -> bool:
        return bool(self.additions or self.readditions or self.changes or self.deletions)

    def _save(self) -> None:
        """Write the whole state to a temp file and rename it into place."""
        payload = {"resources": {k: v.to_dict() for k, v in sorted(self.resources.items())}}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=".state.", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                    f.write("\n")
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StateError(f"{self.path}: failed to write state file: {e}") from e

    def add(self, pkg: Resourcer) -> None:
        resource = pkg.resource()
        with self._lock:
            self.resources[resource.id] = resource
            _logging.debug(f"{resource.name}: added to state")
            self._save()

    def update(self, pkg: Resourcer) -> None:
        resource = pkg.resource()
        with self._lock:
            if resource.id not in self.resources:
                _logging.debug(f"{resource.name}: not in state, skip updating")
                return
            self.resources[resource.id] = resource
            _logging.debug(f"{resource.name}: updated in state")
            self._save()

    def remove(self, resource_id: str) -> None:
        with self._lock:
            removed = self.resources.pop(resource_id, None)
            if removed is None:
                _logging.warning(f"{resource_id}: failed to remove from state")
                return
            _logging.debug(f"{removed.name}: removed from state")
            self._save()

    def list(self) -> list[str]:
        """Return the IDs currently persisted in the state file."""
        with self._lock:
            try:
                content = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return []
            except OSError as e:
                raise StateError(f"{self.path}: failed to read state file: {e}") from e
            return sorted(self._decode(content))

    def get(self, name: str) -> Resource:
        with self._lock:
            for resource in self.resources.values():
                if resource.name == name:
                    return resource
        raise StateError(f"{name}: not found in state file")

    def new(self) -> None:
        """Discard recorded state and record every configured package."""
        with self._lock:
            self.resources = {k: v for k, v in self.packages.items()}
            self._save()

    def refresh(self) -> bool:
        """Rewrite drifted records of known-good packages.

        Does nothing and returns False while any change set is non-empty.
        """
        with self._lock:
            if self.has_pending():
                return False
            refreshed = False
            for pkg_id, live in self.packages.items():
                if self.resources.get(pkg_id) != live:
                    _logging.debug(f"{live.name}: refresh state record")
                    self.resources[pkg_id] = live
                    refreshed = True
            if refreshed:
                _logging.debug("refreshed state to update latest state schema")
                self._save()
            return True


__all__ = ["Resource", "Resourcer", "State", "names"]
