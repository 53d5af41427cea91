# executor.py
from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence

from .cache import LOG_FILE_NAME
from .errors import DeployError
from .manifest import POM_FILE_NAME
from .ui.console import get_console

TOOL_HINTS = {
    "mvn": "Install Apache Maven or fix PATH (mvn).",
    "dev-deploy": "Install the dev-deploy script or fix PATH.",
}

# Headers of the sections Maven surefire prints at the end of a failed run
FAILURE_SECTION_HEADERS = ("Failed tests:", "Tests in error:")


@dataclass(frozen=True)
class BuildResult:
    success: bool
    log_path: Path


# ----------------------------------------------------------------------
# Build
# ----------------------------------------------------------------------

class MavenExecutor:
    """Runs `mvn clean install` for one project, logging to a file in its root."""

    def __init__(self, command: str = "mvn", goals: Sequence[str] = ("clean", "install")):
        self.command = command
        self.goals = list(goals)

    def command_line(self, project_root: Path, extra_flags: Sequence[str] = ()) -> List[str]:
        return [
            self.command,
            "-f", str(project_root / POM_FILE_NAME),
            "-l", str(project_root / LOG_FILE_NAME),
            *extra_flags,
            *self.goals,
        ]

    def build(self, project_root: str | Path, extra_flags: Sequence[str] = ()) -> BuildResult:
        root = Path(project_root)
        log_path = root / LOG_FILE_NAME
        cmd = self.command_line(root, extra_flags)
        console = get_console()
        console.print_command(root.name, cmd)

        try:
            proc = subprocess.run(cmd, cwd=str(root))
        except OSError as e:
            console.print_failure(
                root.name,
                str(e),
                hint=TOOL_HINTS.get(self.command),
            )
            return BuildResult(success=False, log_path=log_path)

        if proc.returncode != 0:
            console.print_failure(root.name, " ".join(cmd), exit_code=proc.returncode)
        return BuildResult(success=proc.returncode == 0, log_path=log_path)


def summarize_failure(log_path: str | Path) -> List[str]:
    """
    Pull the test-failure sections out of a Maven log.

    Each section starts at a line beginning with one of
    FAILURE_SECTION_HEADERS and runs up to the next blank line.
    Returns [] if the log is missing or has no such section.
    """
    p = Path(log_path)
    if not p.exists():
        return []

    lines: List[str] = []
    in_section = False
    for line in p.read_text(encoding="utf-8", errors="replace").splitlines():
        if in_section:
            if not line.strip():
                in_section = False
            else:
                lines.append(line)
        elif line.startswith(FAILURE_SECTION_HEADERS):
            in_section = True
            lines.append(line)
    return lines


# ----------------------------------------------------------------------
# Deploy
# ----------------------------------------------------------------------

class DevDeployExecutor:
    """Pushes a built archive to the development server via `dev-deploy`."""

    def __init__(self, command: str = "dev-deploy"):
        self.command = command

    def deploy(self, archive_path: str | Path, service_name: str, restart: bool) -> None:
        cmd = [self.command, str(archive_path), service_name, "true" if restart else "false"]
        get_console().print_command(service_name, cmd)

        if shutil.which(self.command) is None:
            raise DeployError(
                service=service_name,
                cmd=" ".join(cmd),
                exit_code=127,
                details=[TOOL_HINTS.get(self.command, f"{self.command} not found")],
            )

        proc = subprocess.run(cmd, text=True, capture_output=True)
        if proc.returncode != 0:
            raise DeployError(
                service=service_name,
                cmd=" ".join(cmd),
                exit_code=proc.returncode,
                details=(proc.stdout[-2000:] + proc.stderr[-2000:]).splitlines(),
            )
