# git.py
# Small, focused wrapper around the Git CLI.
# Each project in a run owns one GitRepository; the rest of the codebase
# never calls subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional

from ..errors import ConfigError, SCMError

MISSING_REPO = "<MISSING REPO>"


class GitRepository:
    """
    SCM adapter for one local clone.

    Every command runs with the clone as its working directory. Any non-zero
    exit raises SCMError.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.name = self.path.name

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"

    def _git(self, *args: str) -> str:
        """
        Execute a git command in this repository and return its stdout.

        Args:
            args: git arguments (e.g. "status", "--porcelain")

        Returns:
            Stdout with trailing whitespace removed.
        """
        cmd = ["git", *args]
        proc = subprocess.run(
            cmd,
            cwd=str(self.path),
            text=True,
            capture_output=True,
        )
        if proc.returncode != 0:
            raise SCMError(
                repository=self.name,
                cmd=" ".join(cmd),
                exit_code=proc.returncode,
                stderr=proc.stderr[-4000:],
            )
        return proc.stdout.rstrip()

    def exists(self) -> bool:
        return self.path.exists()

    def current_branch(self) -> str:
        """
        Return the checked-out branch name, or MISSING_REPO if there is
        no local clone.
        """
        if not self.exists():
            return MISSING_REPO
        # `--abbrev-ref HEAD` prints the short branch name ("HEAD" when detached)
        return self._git("rev-parse", "--abbrev-ref", "HEAD")

    def pull(self) -> None:
        # fast-forward only: a pull must never create a merge commit
        self._git("pull", "--ff-only")

    def fetch(self, remote: str = "origin") -> None:
        self._git("fetch", remote)

    def rebase(self, onto: str) -> None:
        self._git("rebase", onto)

    def fetch_and_rebase(self, basis: str, remote: str = "origin") -> None:
        self.fetch(remote)
        self.rebase(f"{remote}/{basis}")

    def status(self) -> List[str]:
        """
        Return the modified paths in the working tree, in `git status` order.

        Includes staged, unstaged and untracked files. An empty list means
        the tree is clean.
        """
        out = self._git("status", "--porcelain")
        if not out:
            return []

        paths: List[str] = []
        for line in out.splitlines():
            # porcelain v1: "XY <path>" or "XY <old> -> <new>"
            entry = line[3:]
            if " -> " in entry:
                entry = entry.split(" -> ", 1)[1]
            paths.append(entry.strip().strip('"'))
        return paths

    def commit_id(self) -> str:
        """
        Return the full SHA of HEAD if the tree is clean, else "".

        A dirty tree has no content-addressed identity, so callers must not
        cache anything against it.
        """
        if self.status():
            return ""
        return self._git("rev-parse", "HEAD")

    def short_commit(self) -> str:
        if not self.exists():
            return ""
        return self._git("log", "-n", "1", "--format=%h")

    def hard_reset(self) -> None:
        self._git("reset", "--hard", "HEAD")

    def save_local_exclusion(self, entry: str) -> None:
        """
        Add `entry` to the repository's local exclude file unless present.

        Keeps fleetbuild's own state and log files out of `git status`.
        """
        # `--git-path` also resolves correctly inside worktrees
        exclude = Path(self._git("rev-parse", "--git-path", "info/exclude"))
        if not exclude.is_absolute():
            exclude = self.path / exclude

        lines: List[str] = []
        if exclude.exists():
            lines = exclude.read_text(encoding="utf-8").splitlines()
        if entry in lines:
            return

        lines.append(entry)
        exclude.parent.mkdir(parents=True, exist_ok=True)
        exclude.write_text("".join(f"{l}\n" for l in lines), encoding="utf-8")


class GitSvnRepository(GitRepository):
    """A git clone tracking a Subversion remote through git-svn."""

    def pull(self) -> None:
        self._git("svn", "rebase")

    def fetch_and_rebase(self, basis: str, remote: str = "origin") -> None:
        # git-svn has no separate remote branch to rebase onto
        self._git("svn", "rebase")


def guess_repo_type(path: Path) -> str:
    """
    Return "git", "git-svn", "svn" or "none" based on VCS metadata in `path`.
    """
    dot_git = path / ".git"
    if dot_git.exists():
        config = dot_git / "config"
        if config.is_file():
            for line in config.read_text(encoding="utf-8", errors="replace").splitlines():
                if line.strip().startswith("[svn-remote "):
                    return "git-svn"
        return "git"
    if (path / ".svn").exists():
        return "svn"
    return "none"


def open_repository(path: str | Path, scm: Optional[str] = None) -> GitRepository:
    """
    Pick the SCM adapter for a clone directory.

    A directory that does not exist yet gets a plain GitRepository, so the
    project is reported as missing instead of failing the whole run.
    """
    path = Path(path)
    if not path.exists():
        return GitRepository(path)

    repo_type = scm or guess_repo_type(path)
    if repo_type == "git":
        return GitRepository(path)
    if repo_type == "git-svn":
        return GitSvnRepository(path)
    if repo_type == "none":
        raise ConfigError(f"No .git or .svn folder was found under {path}")
    raise ConfigError(f"Don't know how to handle {repo_type} at {path}")
