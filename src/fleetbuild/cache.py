# cache.py
from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Optional

# ---------------------------------------------------------------------
# Core idea
# ---------------------------------------------------------------------
# Incremental-build cache keyed by source revision:
#   <project root>/.fleetbuild  holds the commit SHA of the last
#   successful build of that project.
#
# A project whose clean HEAD equals the saved SHA is "up-to-date" and is
# not rebuilt. When an upstream project builds, the state files of its
# downstream projects are erased, forcing them to rebuild next time.
#
# Both file names below are registered in the clone's local exclude file,
# so they never show up as modifications.
# ---------------------------------------------------------------------

STATE_FILE_NAME = ".fleetbuild"
LOG_FILE_NAME = ".fleetbuild.log"

_REVISION_RE = re.compile(r"^[0-9a-fA-F]{40}$")


def is_valid_revision(value: Optional[str]) -> bool:
    """True for a full 40-hex-digit commit SHA."""
    return value is not None and bool(_REVISION_RE.match(value))


class RevisionCache:
    """
    Reads and writes per-project state files.

    One instance is shared by every project in a run. All access goes
    through a single lock, so erasing a downstream project's state can never
    interleave with that project's own skip check.
    """

    def __init__(self, file_name: str = STATE_FILE_NAME):
        self.file_name = file_name
        self._lock = threading.RLock()

    def path(self, root: str | Path) -> Path:
        return Path(root) / self.file_name

    def read(self, root: str | Path) -> Optional[str]:
        """Return the saved revision, or None if absent or not a valid SHA."""
        p = self.path(root)
        with self._lock:
            if not p.exists():
                return None
            saved = p.read_text(encoding="utf-8", errors="replace").strip()
        return saved if is_valid_revision(saved) else None

    def save(self, root: str | Path, revision: Optional[str]) -> bool:
        """
        Save `revision` for the project at `root`.

        Returns False (and writes nothing) when the revision is not a valid SHA,
        e.g. the empty marker of a dirty tree.
        """
        if not is_valid_revision(revision):
            return False
        p = self.path(root)
        with self._lock:
            p.write_text(revision, encoding="utf-8")
        return True

    def erase(self, root: str | Path) -> bool:
        """Remove the saved revision. Returns True if a file was removed."""
        p = self.path(root)
        with self._lock:
            if not p.exists():
                return False
            p.unlink()
        return True
