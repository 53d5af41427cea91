"""Console output formatting utilities for fleetbuild."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

from ..timing import format_elapsed

if TYPE_CHECKING:
    from ..config import RunConfig
    from ..model import Fatal
    from ..runner import BranchRow, RunReport


REPORT_FORMAT = "{:<20} {:<6} {:>14}  {}"
BRANCH_FORMAT = "{:<20} {:>5} {:>7} {}"


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # multi-line blocks from parallel workers must not interleave
        self._lock = threading.Lock()

    def print_settings(self, config: RunConfig) -> None:
        """Print the effective run settings before anything is touched."""
        if config.project_list:
            print(f"Only building selected projects: {' '.join(config.project_list)}")
        if config.auto_reset:
            print("Auto-reset enabled - running git reset on all projects after build")
        print(f"    Execution phases: {[p.value for p in config.phases]}")
        print(f"       Pull branches: {sorted(config.branches.pull)}")
        print(f"     Rebase branches: {sorted(config.branches.rebase)}")
        print(f"      Local branches: {sorted(config.branches.local)}")
        print(f"Default basis branch: {config.basis_branch}")
        if config.workers > 1:
            print(f"             Workers: {config.workers}")

    def print_project(self, name: str, message: str) -> None:
        """Print a message prefixed with the project name."""
        print(f"{name}: {message}")

    def print_command(self, name: str, cmd: Sequence[str]) -> None:
        print(f"{name}: {' '.join(cmd)}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
        details: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Print a per-project failure. These never stop the run.

        Args:
            name: Project name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
            details: Optional extra lines (shown in debug mode only)
        """
        with self._lock:
            print(f"FAILED: {name}")
            if exit_code is not None:
                print(f"Exit code: {exit_code}")
            if hint:
                print(f"Hint: {hint}")
            if self.debug:
                print(f"Error details: {reason}")
                for line in details or []:
                    print(f"  {line}")
            else:
                error_line = reason.split("\n")[0] if reason else "Unknown error"
                print(f"Error: {error_line}")

    def print_failure_summary(self, name: str, lines: List[str]) -> None:
        """Print the failed-tests excerpt pulled from a build log."""
        if not lines:
            return
        with self._lock:
            for line in lines:
                print(line)

    def print_upstream_fail(self, upstream: str, name: str) -> None:
        print(f"{upstream}: Marking 'upstream fail' condition for {name}")

    def print_report(self, report: RunReport) -> None:
        """Print the final per-project table and the total run time."""
        print()
        print(REPORT_FORMAT.format("Project", "Time", "Build Status", "Branch"))
        print(REPORT_FORMAT.format("=======", "====", "============", "======"))
        for o in report.outcomes:
            elapsed = "--:--" if o.elapsed is None else format_elapsed(o.elapsed)
            print(REPORT_FORMAT.format(o.name, elapsed, o.status.value, o.branch))
        print(REPORT_FORMAT.format("=====", "=====", "", ""))
        print(REPORT_FORMAT.format("TOTAL", format_elapsed(report.total_elapsed), "", "").rstrip())

    def print_branch_report(self, rows: Iterable[BranchRow]) -> None:
        """Print the read-only branch overview."""
        print(BRANCH_FORMAT.format("Project", "# Mod", "Commit", "Branch"))
        print(BRANCH_FORMAT.format("=======", "=====", "======", "======"))
        for r in rows:
            print(BRANCH_FORMAT.format(r.name, r.modified, r.commit, r.branch))

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_fatal(self, fatal: Fatal) -> None:
        """Print the condition that stopped the run."""
        title = f"Run aborted ({fatal.kind})"
        message = f"{fatal.project}: {fatal.message}" if fatal.project else fatal.message
        self.print_error(title, message, details=list(fatal.details) or None)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
