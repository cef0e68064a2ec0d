"""File-backed catalog persistence.

The catalog is a single pretty-printed JSON array of
:class:`~navigator.models.ServiceEntry` records.  Writes go to a ``.tmp``
sibling that is renamed over the target, and the previous good file is copied
to a ``.bak`` sibling first; :meth:`CatalogStore.load` falls back to that
backup when the primary file does not parse.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from navigator.models import ServiceEntry

logger = logging.getLogger(__name__)

_ENTRIES = TypeAdapter(list[ServiceEntry])


class CatalogStoreError(Exception):
    """Raised when the catalog cannot be read or written."""


class CatalogStore:
    """Read/write the catalog file at *path*.

    Args:
        path: Catalog file location.  ``<path>.bak`` and ``<path>.tmp`` are
              used alongside it.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.backup_path = Path(f"{self.path}.bak")
        self.temp_path = Path(f"{self.path}.tmp")

    def load(self) -> list[ServiceEntry]:
        """Return the persisted entries (empty list when no file exists yet)."""
        if not self.path.exists():
            self._ensure_parent_dir()
            return []
        try:
            content = self.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CatalogStoreError(f"failed reading {self.path}: {exc}") from exc

        try:
            return self._parse(content)
        except (ValueError, ValidationError) as primary_error:
            if not self.backup_path.exists():
                raise CatalogStoreError(
                    f"failed parsing {self.path} and backup file does not exist"
                ) from primary_error
            logger.warning(
                "Catalog %s is unreadable (%s), falling back to %s",
                self.path, primary_error, self.backup_path,
            )

        try:
            return self._parse(self.backup_path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as exc:
            raise CatalogStoreError(
                f"failed parsing {self.path} and backup {self.backup_path}"
            ) from exc

    def save(self, entries: list[ServiceEntry]) -> None:
        """Atomically replace the catalog file with *entries*."""
        self._ensure_parent_dir()
        payload = json.dumps(
            [e.model_dump(mode="json") for e in entries],
            indent=2,
            ensure_ascii=False,
        )

        if self._primary_is_valid():
            try:
                shutil.copy2(self.path, self.backup_path)
            except OSError:
                logger.warning("Could not refresh backup %s", self.backup_path, exc_info=True)
        elif self.path.exists():
            logger.warning("Keeping backup %s: %s does not parse", self.backup_path, self.path)

        try:
            with open(self.temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self.temp_path, self.path)
        except OSError as exc:
            raise CatalogStoreError(f"failed writing {self.path}: {exc}") from exc
        logger.debug("Saved %d service(s) to %s", len(entries), self.path)

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _parse(content: str) -> list[ServiceEntry]:
        return _ENTRIES.validate_python(json.loads(content))

    def _primary_is_valid(self) -> bool:
        """Only a parseable primary file may replace the backup."""
        try:
            self._parse(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError):
            return False
        return True

    def _ensure_parent_dir(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CatalogStoreError(
                f"failed creating data directory {self.path.parent}: {exc}"
            ) from exc
