# cli.py
from __future__ import annotations

import sys

import click

from fleetbuild.config import RunConfig, split_branch_list
from fleetbuild.errors import ConfigError
from fleetbuild.model import Phase
from fleetbuild.runner import branch_report, run_projects
from fleetbuild.ui.console import Console, get_console, set_console
from fleetbuild.workspace import create_projects, find_build_file, load_build_file, open_repositories


def _parse_phases(ctx, param, value):
    if value is None:
        return None
    try:
        return Phase.parse_list(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _parse_branches(ctx, param, value):
    return split_branch_list(value)


build_file_option = click.option(
    "-f",
    "--build-file",
    default=None,
    help="Build file path (defaults to fleetbuild_workspace.py, then $FLEETBUILD_FILE)",
)
projects_dir_option = click.option(
    "-d",
    "--projects-dir",
    default=None,
    help="Directory containing the project clones (overrides config.project_dir)",
)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
def cli(debug):
    """fleetbuild: sync, build and deploy interdependent Maven projects in dependency order."""
    console = Console(debug=debug)
    set_console(console)


@cli.command()
@build_file_option
@projects_dir_option
@click.option(
    "-P",
    "--phases",
    default=None,
    callback=_parse_phases,
    help="Comma-separated phases to run: sync, build, deploy (default: all)",
)
@click.option(
    "-R",
    "--auto-reset",
    is_flag=True,
    default=False,
    help="Refuse to build dirty projects and hard-reset build leftovers afterwards",
)
@click.option("-m", "--pull-branches", default=None, callback=_parse_branches, help="Comma-separated pull branches")
@click.option("-b", "--rebase-branches", default=None, callback=_parse_branches, help="Comma-separated rebase branches")
@click.option("-l", "--local-branches", default=None, callback=_parse_branches, help="Comma-separated local branches")
@click.option("-B", "--basis-branch", default=None, help="Branch that rebase branches are rebased onto")
@click.option("--workers", default=1, show_default=True, type=int, help="Build independent projects in parallel")
@click.argument("projects", nargs=-1)
def run(
    build_file,
    projects_dir,
    phases,
    auto_reset,
    pull_branches,
    rebase_branches,
    local_branches,
    basis_branch,
    workers,
    projects,
):
    """Sync, build and deploy the workspace (or only PROJECTS)."""
    console = get_console()

    try:
        workspace = load_build_file(find_build_file(build_file))
        config = RunConfig.resolve(
            workspace,
            project_dir=projects_dir,
            pull_branches=pull_branches,
            rebase_branches=rebase_branches,
            local_branches=local_branches,
            basis_branch=basis_branch,
            phases=phases,
            auto_reset=auto_reset,
            project_list=projects,
            workers=workers,
        )
        console.print_settings(config)

        project_objs = create_projects(workspace, config)
        if not project_objs:
            console.print_info("There are no projects to build")
            return

        report = run_projects(project_objs, phases=config.phases, workers=config.workers)
        console.print_report(report)

        if report.fatal is not None:
            console.print_fatal(report.fatal)
            sys.exit(1)

    except ConfigError as e:
        console.print_error("Configuration error", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@build_file_option
@projects_dir_option
@click.argument("projects", nargs=-1)
def status(build_file, projects_dir, projects):
    """Show modified-file count, commit and branch of each project. Changes nothing."""
    console = get_console()

    try:
        workspace = load_build_file(find_build_file(build_file))
        config = RunConfig.resolve(workspace, project_dir=projects_dir, project_list=projects)
        console.print_branch_report(branch_report(open_repositories(workspace, config)))
    except ConfigError as e:
        console.print_error("Configuration error", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
