from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from typing import IO, List, Optional, Union

from mond.models import NOT_REPORTED, UNHEALTHY, AccessLog, App, Apps, HealthCheck, LoadError, dump_apps, load_apps

logger = logging.getLogger(__name__)

EMPTY_DB = "[]"


# ----------------------------
# Backing writers
# ----------------------------
class Tape:
    """Rewrites an open text handle from the start on every write."""

    def __init__(self, file: IO[str]):
        self.file = file

    def write(self, data: str) -> None:
        self.file.truncate(0)
        self.file.seek(0)
        self.file.write(data)
        self.file.flush()


class AtomicFile:
    """
    Replaces the file at ``path`` on every write: the new content goes to a
    temp file in the same directory, is fsynced, then os.replace()d over the
    target. Readers see either the old or the new document, never a torn one.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def write(self, data: str) -> None:
        directory, name = os.path.split(self.path)
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if os.path.exists(self.path):
                shutil.copymode(self.path, tmp)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


# ----------------------------
# Store
# ----------------------------
class FileSystemAppsStore:
    """
    Registry of apps backed by a single JSON document.

    Every mutation re-encodes the whole registry. One lock covers lookups,
    mutations and the write, so readers never see half-applied changes and
    writes never interleave. Getters hand out copies.
    """

    def __init__(self, database: IO[str], *, writer=None):
        self._lock = threading.Lock()
        self._apps = _read_apps(database)
        self._database = writer or Tape(database)

    @classmethod
    def from_path(cls, path: str) -> "FileSystemAppsStore":
        with open(path, "a+", encoding="utf-8") as f:
            store = cls(f, writer=AtomicFile(path))
        logger.info("loaded %d app(s) from %s", len(store._apps), path)
        return store

    # -- reads --
    def get_app_names(self) -> List[str]:
        with self._lock:
            return self._apps.names()

    def get_apps(self) -> List[App]:
        with self._lock:
            return [app.model_copy(deep=True) for app in self._apps]

    def get_app(self, name: str) -> Optional[App]:
        with self._lock:
            app = self._apps.find(name)
            return app.model_copy(deep=True) if app is not None else None

    def get_access_logs(self, name: str) -> List[AccessLog]:
        with self._lock:
            app = self._apps.find(name)
            return list(app.logs) if app is not None else []

    def get_health(self, name: str) -> HealthCheck:
        with self._lock:
            app = self._apps.find(name)
            return app.health if app is not None else UNHEALTHY

    def get_reported_health(self, name: str) -> Optional[HealthCheck]:
        """Health as last reported, or None if the app never reported any."""
        with self._lock:
            app = self._apps.find(name)
            if app is None or app.health == NOT_REPORTED:
                return None
            return app.health

    # -- writes --
    def record_access_log(self, name: str, log: AccessLog) -> None:
        with self._lock:
            app = self._apps.find(name)
            if app is not None:
                app.logs.append(log)
            else:
                self._apps.append(App(name=name, logs=[log]))
            self._flush()

    def record_health(self, name: str, check: HealthCheck) -> None:
        with self._lock:
            app = self._apps.find(name)
            if app is not None:
                app.health = check
            else:
                self._apps.append(App(name=name, health=check))
            self._flush()

    def _flush(self) -> None:
        self._database.write(dump_apps(self._apps))


def _read_apps(file: IO[str]) -> Apps:
    name = getattr(file, "name", "<stream>")
    file.seek(0)
    try:
        content = file.read()
    except UnicodeDecodeError as e:
        raise LoadError(f"problem loading apps store from {name}, {e}") from e
    if not content.strip():
        file.seek(0)
        file.truncate(0)
        file.write(EMPTY_DB)
        file.flush()
        content = EMPTY_DB
    try:
        return load_apps(content)
    except LoadError as e:
        raise LoadError(f"problem loading apps store from {name}, {e}") from e


def open_store(path_or_handle: Union[str, "os.PathLike[str]", IO[str]]) -> FileSystemAppsStore:
    """Open a store from a filesystem path (atomic rewrites) or an open read/write text handle."""
    if isinstance(path_or_handle, (str, os.PathLike)):
        return FileSystemAppsStore.from_path(os.fspath(path_or_handle))
    return FileSystemAppsStore(path_or_handle)
