"""Command line interface: ``snapgit <command> [operands]``."""

import logging
from datetime import datetime

import click

from . import __version__
from .errors import IncorrectOperands, SnapgitError
from .objects import Commit
from .repository import Repository, Status

DATE_FORMAT = "%a %b %d %H:%M:%S %Y %z"

logger = logging.getLogger(__name__)


class SnapgitGroup(click.Group):
    """Click group that reports outcomes as one fixed diagnostic line.

    ``SnapgitError`` subclasses print their message and exit with their
    status; malformed operands print ``Incorrect operands.`` instead of
    click's usage text.
    """

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError:
            raise SnapgitError("No command with that name exists.") from None

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except SnapgitError as exc:
            logger.debug("Command failed: %s", type(exc).__name__)
            click.echo(exc.message)
            ctx.exit(exc.exit_code)
        except click.UsageError as exc:
            logger.debug("Bad operands: %s", exc.format_message())
            click.echo(IncorrectOperands.message)
            ctx.exit(IncorrectOperands.exit_code)


class RawArgsCommand(click.Command):
    """Command that keeps its unparsed arguments, ``--`` included."""

    def parse_args(self, ctx, args):
        ctx.meta["raw_args"] = list(args)
        return super().parse_args(ctx, args)


def format_commit(commit: Commit) -> str:
    """One ``log`` entry, including its trailing blank line."""
    lines = ["===", f"commit {commit.id}"]
    if commit.is_merge:
        lines.append(
            f"Merge: {commit.parent_id[:7]} {commit.second_parent_id[:7]}"  # type: ignore[index]
        )
    date = datetime.fromtimestamp(commit.timestamp).astimezone()
    lines.append(f"Date: {date.strftime(DATE_FORMAT)}")
    lines.append(commit.message)
    return "\n".join(lines) + "\n"


def format_status(status: Status) -> str:
    branches = [
        f"*{name}" if name == status.current_branch else name
        for name in status.branches
    ]
    sections = [
        ("Branches", branches),
        ("Staged Files", status.staged),
        ("Removed Files", status.removed),
        ("Modifications Not Staged For Commit", status.modified),
        ("Untracked Files", status.untracked),
    ]
    lines: list[str] = []
    for title, entries in sections:
        lines.append(f"=== {title} ===")
        lines.extend(entries)
        lines.append("")
    return "\n".join(lines)


def _open(ctx: click.Context) -> Repository:
    return Repository.open(ctx.obj["directory"])


@click.group(cls=SnapgitGroup, invoke_without_command=True)
@click.option(
    "-C",
    "--directory",
    envvar="SNAPGIT_DIR",
    default=".",
    type=click.Path(file_okay=False),
    help="Working directory of the repository (default: current directory).",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="snapgit")
@click.pass_context
def cli(ctx, directory: str, verbose: bool):
    """A local, single-user version-control system."""
    ctx.ensure_object(dict)
    ctx.obj["directory"] = directory

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    if ctx.invoked_subcommand is None:
        raise SnapgitError("Please enter a command.")


@cli.command()
@click.pass_context
def init(ctx):
    """Create a repository in the working directory."""
    with Repository.init(ctx.obj["directory"]):
        pass


@cli.command()
@click.argument("filename")
@click.pass_context
def add(ctx, filename: str):
    """Stage a file for the next commit."""
    with _open(ctx) as repo:
        repo.add(filename)


@cli.command()
@click.argument("message", required=False, default="")
@click.pass_context
def commit(ctx, message: str):
    """Record the staged changes."""
    with _open(ctx) as repo:
        repo.commit(message)


@cli.command()
@click.argument("filename")
@click.pass_context
def rm(ctx, filename: str):
    """Un-stage a file, or stage a tracked file for removal."""
    with _open(ctx) as repo:
        repo.rm(filename)


@cli.command()
@click.pass_context
def log(ctx):
    """Show the current branch's history."""
    with _open(ctx) as repo:
        for entry in repo.log():
            click.echo(format_commit(entry))


@cli.command("global-log")
@click.pass_context
def global_log(ctx):
    """Show every commit ever made."""
    with _open(ctx) as repo:
        for entry in repo.global_log():
            click.echo(format_commit(entry))


@cli.command()
@click.argument("message")
@click.pass_context
def find(ctx, message: str):
    """Print the ids of commits with the given message."""
    with _open(ctx) as repo:
        for commit_id in repo.find(message):
            click.echo(commit_id)


@cli.command()
@click.pass_context
def status(ctx):
    """Show branches, staged files and working-directory changes."""
    with _open(ctx) as repo:
        click.echo(format_status(repo.status()))


@cli.command(cls=RawArgsCommand, context_settings={"ignore_unknown_options": True})
@click.argument("operands", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def checkout(ctx, operands):
    """Restore a file, or switch branches.

    \b
    snapgit checkout -- FILE
    snapgit checkout COMMIT -- FILE
    snapgit checkout BRANCH
    """
    args = ctx.meta["raw_args"]
    if len(args) == 2 and args[0] == "--":
        commit_id, filename, branch = None, args[1], None
    elif len(args) == 3 and args[1] == "--":
        commit_id, filename, branch = args[0], args[2], None
    elif len(args) == 1 and args[0] != "--":
        commit_id, filename, branch = None, None, args[0]
    else:
        raise IncorrectOperands()

    with _open(ctx) as repo:
        if branch is not None:
            repo.checkout_branch(branch)
        else:
            repo.checkout_file(filename, commit_id)


@cli.command()
@click.argument("name")
@click.pass_context
def branch(ctx, name: str):
    """Create a branch at the current commit."""
    with _open(ctx) as repo:
        repo.branch(name)


@cli.command("rm-branch")
@click.argument("name")
@click.pass_context
def rm_branch(ctx, name: str):
    """Delete a branch pointer."""
    with _open(ctx) as repo:
        repo.rm_branch(name)


@cli.command()
@click.argument("commit_id")
@click.pass_context
def reset(ctx, commit_id: str):
    """Move the current branch to a commit and restore its files."""
    with _open(ctx) as repo:
        repo.reset(commit_id)


@cli.command()
@click.argument("branch_name")
@click.pass_context
def merge(ctx, branch_name: str):
    """Merge a branch into the current branch."""
    with _open(ctx) as repo:
        result = repo.merge(branch_name)
    if result.strategy == "fast_forward":
        click.echo("Current branch fast-forwarded.")


def main() -> None:
    cli(prog_name="snapgit")


if __name__ == "__main__":
    main()
