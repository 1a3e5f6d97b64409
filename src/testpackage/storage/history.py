"""Plain-text store of test failure history.

Each line of the history file holds one entry::

    <test key>\t<runs since last failure>[\t<extra fields>...]

Keys are either class keys (``module.Class``) or method keys
(``method(module.Class)``). Entries are written sorted by key so that the
file stays diff-stable between runs.
"""

import logging
from pathlib import Path
from typing import Iterator, Mapping, Optional

from testpackage.errors import HistoryStoreError

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "\t"


class HistoryStore:
    """Mapping of test keys to the number of runs since each last failed."""

    def __init__(self, path: Path | str, entries: Optional[Mapping[str, int]] = None):
        """Create a store bound to ``path``.

        Use :meth:`load` to populate the store from an existing file.
        """
        self.path = Path(path)
        self._entries: dict[str, int] = dict(entries or {})

    @classmethod
    def load(cls, path: Path | str) -> "HistoryStore":
        """Load the store from ``path``.

        A missing file gives an empty store. Malformed or undecodable lines
        are skipped.

        Raises:
            HistoryStoreError: If the file exists but cannot be read
        """
        path = Path(path)
        store = cls(path)

        if not path.exists():
            logger.debug("No history file at %s, starting with empty history", path)
            return store

        try:
            data = path.read_bytes()
        except OSError as e:
            raise HistoryStoreError(f"Could not read test history file {path}: {e}", path) from e

        for line_number, raw_line in enumerate(data.splitlines(), start=1):
            try:
                line = raw_line.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Skipping malformed history entry at %s:%d: %r", path, line_number, raw_line)
                continue

            entry = _parse_line(line)
            if entry is None:
                if line.strip() and not line.lstrip().startswith("#"):
                    logger.warning("Skipping malformed history entry at %s:%d: %r", path, line_number, line)
                continue
            key, count = entry
            store._entries[key] = count

        logger.debug("Loaded %d history entries from %s", len(store), path)
        return store

    def save(self) -> Path:
        """Write every entry to the history file, sorted by key.

        The file and its parent directory are created even when the store
        is empty.

        Raises:
            HistoryStoreError: If the file cannot be written
        """
        lines = [f"{key}{FIELD_SEPARATOR}{count}\n" for key, count in sorted(self._entries.items())]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                f.writelines(lines)
        except OSError as e:
            raise HistoryStoreError(f"Could not write test history file {self.path}: {e}", self.path) from e

        logger.debug("Saved %d history entries to %s", len(lines), self.path)
        return self.path

    @property
    def runs_since_last_failure(self) -> dict[str, int]:
        """Copy of the current counters."""
        return dict(self._entries)

    def get(self, key: str, default: Optional[int] = None) -> Optional[int]:
        return self._entries.get(key, default)

    def replace(self, entries: Mapping[str, int]) -> None:
        """Replace every counter with ``entries``."""
        for key, count in entries.items():
            if count < 0:
                raise ValueError(f"Negative run count for {key!r}: {count}")
        self._entries = dict(entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._entries))


def _parse_line(line: str) -> Optional[tuple[str, int]]:
    """Parse one history line, returning None when it is not a valid entry."""
    if not line.strip() or line.lstrip().startswith("#"):
        return None

    fields = line.rstrip("\r\n").split(FIELD_SEPARATOR)
    if len(fields) < 2:
        return None

    key = fields[0].strip()
    if not key:
        return None

    try:
        count = int(fields[1].strip())
    except ValueError:
        return None

    if count < 0:
        return None

    return key, count
