"""
Command Line Interface for tagtm.
"""

import logging

import click
from pathlib import Path
from .version import VERSION
from .config import load_config
from .data import TaggedStore
from .graph import find_unresolved_dependencies
from .logs import set_console_level
from .migrate import CrossTagMigrator
from .models import BatchMoveResult
from .moves import IntraTagMover
from .policies import policy_from_flags
from .recovery import MoveErrorCode, MoveTaskError, TagTMError


def _tasks_path(config, file):
    return Path(file) if file else config.resolve_tasks_path(Path.cwd())


def _report_error(error: TagTMError):
    if isinstance(error, MoveTaskError):
        click.echo(f"❌ [{error.code.value}] {error.message}", err=True)
        for conflict in error.data.get("conflicts", []):
            click.echo(f"   🔗 {conflict['message']}", err=True)
        for suggestion in error.suggestions:
            click.echo(f"   💡 {suggestion}", err=True)
    else:
        click.echo(f"❌ Error: {error}", err=True)


@click.group()
@click.version_option(version=VERSION, prog_name="tagtm")
@click.option('-v', '--verbose', count=True, help='Log progress to stderr (-vv for debug output)')
def main(verbose):
    """
    tagtm - move tasks and subtasks within and between tags.
    """
    if verbose:
        set_console_level(logging.DEBUG if verbose > 1 else logging.INFO)


@main.command()
@click.option('--from', 'from_ids', required=True, help='Source id(s), e.g. "5", "5.2" or "5,6"')
@click.option('--to', 'to_ids', help='Destination id(s) for a move within one tag')
@click.option('--tag', help='Tag for a move within one tag (default: configured tag)')
@click.option('--from-tag', help='Source tag for a cross-tag move')
@click.option('--to-tag', help='Target tag for a cross-tag move')
@click.option('--with-dependencies', is_flag=True, help='Move the tasks together with their dependencies')
@click.option('--ignore-dependencies', is_flag=True, help='Drop dependencies that would cross tags')
@click.option('-f', '--file', type=click.Path(dir_okay=False), help='Path to the tasks file')
def move(from_ids, to_ids, tag, from_tag, to_tag, with_dependencies, ignore_dependencies, file):
    """Move tasks or subtasks within a tag, or tasks between tags."""
    try:
        config = load_config()
        tasks_path = _tasks_path(config, file)

        if from_tag or to_tag:
            if not (from_tag and to_tag):
                raise click.UsageError("Cross-tag moves need both --from-tag and --to-tag")
            try:
                policy = policy_from_flags(with_dependencies, ignore_dependencies)
            except ValueError as e:
                raise click.UsageError(str(e)) from e

            migrator = CrossTagMigrator(TaggedStore(), max_depth=config.with_dependencies_max_depth)
            result = migrator.move_between_tags(tasks_path, from_ids, from_tag, to_tag, policy, Path.cwd())
            click.echo(f"✅ {result.message}")
            for moved in result.moved_tasks:
                click.echo(f"   📦 Task {moved.id}: {moved.from_tag} → {moved.to_tag}")
            for tip in result.tips:
                click.echo(f"   💡 {tip}")
            return

        if not to_ids:
            raise click.UsageError("--to is required for a move within one tag")
        mover = IntraTagMover(TaggedStore())
        result = mover.move(tasks_path, from_ids, to_ids, tag or config.default_tag, Path.cwd())
        if isinstance(result, BatchMoveResult):
            click.echo(f"✅ {result.message}")
            for item in result.moves:
                click.echo(f"   📦 {item.message}")
            for error in result.errors:
                click.echo(f"   ⚠️  {error['source']} → {error['destination']}: {error['message']}")
        else:
            click.echo(f"✅ {result.message}")

    except TagTMError as e:
        _report_error(e)
        raise SystemExit(1)


@main.command()
@click.option('-f', '--file', type=click.Path(dir_okay=False), help='Path to the tasks file')
def tags(file):
    """List tags with their task counts."""
    try:
        config = load_config()
        data = TaggedStore().load_raw(_tasks_path(config, file))
    except TagTMError as e:
        _report_error(e)
        raise SystemExit(1)

    if not data.tag_names():
        click.echo("📭 No tags found")
        return

    click.echo("🏷️  Tags:")
    for name in data.tag_names():
        marker = " (default)" if name == config.default_tag else ""
        click.echo(f"   {name}: {len(data[name].tasks)} tasks{marker}")


@main.command('validate-dependencies')
@click.option('--tag', help='Only check this tag')
@click.option('-f', '--file', type=click.Path(dir_okay=False), help='Path to the tasks file')
def validate_dependencies(tag, file):
    """Report dependencies that do not resolve inside their own tag."""
    try:
        config = load_config()
        data = TaggedStore().load_raw(_tasks_path(config, file))
        if tag and not data.has_tag(tag):
            raise MoveTaskError(MoveErrorCode.INVALID_SOURCE_TAG, f'Tag "{tag}" not found', {"availableTags": data.tag_names()})
    except TagTMError as e:
        _report_error(e)
        raise SystemExit(1)

    found = 0
    for name in ([tag] if tag else data.tag_names()):
        issues = find_unresolved_dependencies(data[name].tasks)
        for issue in issues:
            click.echo(f"   ❌ [{name}] {issue.message}")
        found += len(issues)

    if found:
        click.echo(f"⚠️  Found {found} invalid dependencies")
        raise SystemExit(1)
    click.echo("✅ All dependencies are valid")


if __name__ == '__main__':
    main()
