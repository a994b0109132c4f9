"""twistsync command-line entry point.

Startup sequence:
1. ConfigManager init (loads or creates settings.yaml)
2. Logger init (reads log_level from config, --verbose forces DEBUG)
3. Settings resolution (token, workspace id, workspace dir)
4. Adapter creation (TwistRESTAdapter)
5. Service creation (SyncService, CommentService)
6. Command execution
"""

import sys
import logging
from pathlib import Path
from typing import Optional

import click
import yaml

from twistsync.adapters.rest_adapter import TwistRESTAdapter
from twistsync.core.config_manager import ConfigManager, is_valid_timezone
from twistsync.core.exceptions import ConfigError, TwistSyncError
from twistsync.core.logger import setup_logger
from twistsync.core.types import CommentDTO, ParsedSection, SyncOptions
from twistsync.services.comment_service import CommentService
from twistsync.services.sync_service import SyncService
from twistsync.services.thread_writer import channel_dir_name

logger = logging.getLogger("twistsync")

# (message fragment, hint lines) for known configuration errors
SETUP_HINTS = [
    ("No Twist API token found", [
        "Set your API token with:",
        "  export TWIST_TOKEN='your-token-here'",
        "Or add twist.token to settings.yaml",
    ]),
    ("No Twist workspace ID found", [
        "Set your workspace ID with:",
        "  export TWIST_WORKSPACE_ID='your-workspace-id'",
        "Or add twist.workspace_id to settings.yaml",
    ]),
    ("No Twist workspace directory found", [
        "Set your workspace directory with:",
        "  export TWIST_WORKSPACE_DIR='./my-workspace'",
        "Or add sync.workspace_dir to settings.yaml",
    ]),
]


class Services:
    """Adapter and services wired from one resolved Settings."""

    def __init__(self, config: ConfigManager, require_workspace: bool = True):
        self.settings = config.resolve_settings(require_workspace=require_workspace)
        self.twist = TwistRESTAdapter(
            token=self.settings.token,
            base_url=self.settings.api_base_url,
            timeout=config.get("twist.timeout", 30),
            request_interval_sec=config.get("twist.request_interval_sec", 0.5),
            max_retries=config.get("twist.max_retries", 3),
        )
        self.sync = SyncService(self.twist, self.settings)
        self.comments = CommentService(self.twist, self.sync)


def _fail(error: TwistSyncError) -> None:
    """Print a handled error (plus setup hints) and exit with status 1."""
    click.echo(f"Error: {error.message}", err=True)
    if isinstance(error, ConfigError):
        for fragment, hint in SETUP_HINTS:
            if fragment in error.message:
                click.echo("", err=True)
                click.echo("Hint: " + "\n".join(hint), err=True)
    sys.exit(1)


def _validate_timezone(ctx, param, value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_timezone(value):
        raise click.BadParameter(f"unknown timezone '{value}'")
    return value


@click.group()
@click.version_option(version="0.1.0")
@click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
              default=None, help="Path to settings.yaml (default: $TWISTSYNC_CONFIG or "
                                 "~/.config/twistsync/settings.yaml)")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output")
@click.pass_context
def cli(ctx, config_path: Optional[Path], verbose: bool):
    """twistsync - Sync Twist threads to markdown files and post drafted replies."""
    config = ConfigManager(config_path)

    log_level = "DEBUG" if verbose else config.get("app.log_level", "INFO")
    setup_logger(
        log_level=log_level,
        mask_logs=config.get("security.mask_logs", True),
        log_dir=config.get_log_dir(),
    )
    logger.debug(f"Using configuration at {config.CONFIG_PATH}")
    ctx.obj = config


@cli.command()
@click.option("--force", is_flag=True, help="Rewrite files even when timestamps match")
@click.option("--limit", "thread_limit", type=click.IntRange(min=1), default=None,
              help="Maximum threads per channel (default: sync.thread_limit, max 500)")
@click.option("--timezone", default=None, callback=_validate_timezone,
              help="Timezone for timestamps (default: sync.timezone)")
@click.option("--newer-than", "newer_than_ts", type=click.IntRange(min=1), default=None,
              help="Only threads newer than this Unix timestamp")
@click.option("--older-than", "older_than_ts", type=click.IntRange(min=1), default=None,
              help="Only threads older than this Unix timestamp")
@click.option("--channel", "channel_ids", type=int, multiple=True,
              help="Sync only this channel id (repeatable)")
@click.pass_obj
def sync(config: ConfigManager, force: bool, thread_limit: Optional[int],
         timezone: Optional[str], newer_than_ts: Optional[int],
         older_than_ts: Optional[int], channel_ids: tuple):
    """Sync the workspace (or selected channels) into the workspace directory.

    Examples:
        twistsync sync
        twistsync sync --force --limit 100 --timezone America/New_York
        twistsync sync --channel 12345 --channel 67890
    """
    try:
        services = Services(config)
    except TwistSyncError as e:
        _fail(e)

    options = SyncOptions(
        thread_limit=thread_limit or config.get("sync.thread_limit", 20),
        newer_than_ts=newer_than_ts,
        older_than_ts=older_than_ts,
        force=force,
        timezone=timezone or services.settings.timezone,
    )

    click.echo("Starting workspace sync...")
    if force:
        click.echo("Force sync enabled - will sync all files regardless of timestamps")

    if not channel_ids:
        try:
            updated = services.sync.sync_workspace(options)
        except TwistSyncError as e:
            _fail(e)
        click.echo(f"Workspace sync completed successfully ({len(updated)} files updated)")
        return

    # Explicit channels: a failing channel is reported and the rest still sync
    updated = []
    failed = []
    for channel_id in channel_ids:
        try:
            updated.extend(services.sync.sync_channel(channel_id, options))
        except TwistSyncError as e:
            click.echo(f"Error syncing channel {channel_id}: {e.message}", err=True)
            failed.append(channel_id)

    click.echo(f"Channel sync completed ({len(updated)} files updated)")
    if failed:
        click.echo(f"Failed channels: {', '.join(str(c) for c in failed)}", err=True)
        sys.exit(1)


def _echo_preview(verb: str, thread_or_comment: str, parsed: ParsedSection) -> None:
    click.echo(f"Would {verb} {thread_or_comment}:")
    params = yaml.safe_dump(parsed.params, sort_keys=False, default_flow_style=None).strip()
    click.echo(f"Parameters: {params if parsed.params else '{}'}")
    click.echo("Content:")
    click.echo(parsed.content)


@cli.command("post-comment")
@click.argument("file_path", type=click.Path(path_type=Path))
@click.option("--dry-run", is_flag=True, help="Show what would be posted without posting")
@click.option("--update/--no-update", default=True,
              help="Refresh the thread file after posting (default: update)")
@click.pass_obj
def post_comment(config: ConfigManager, file_path: Path, dry_run: bool, update: bool):
    """Post the '# DRAFT COMMENT' section at the end of FILE_PATH."""
    try:
        services = Services(config, require_workspace=False)
        result = services.comments.post_draft(file_path, update=update, dry_run=dry_run)
    except TwistSyncError as e:
        _fail(e)

    if isinstance(result, ParsedSection):
        _echo_preview("post comment to", str(file_path), result)
        click.echo("Dry run completed successfully")
    elif isinstance(result, CommentDTO):
        click.echo(f"Comment posted successfully (Comment {result.id})")


@cli.command("update-comment")
@click.argument("file_path", type=click.Path(path_type=Path))
@click.option("--dry-run", is_flag=True, help="Show what would be changed without updating")
@click.option("--update/--no-update", default=True,
              help="Refresh the thread file after updating (default: update)")
@click.pass_obj
def update_comment(config: ConfigManager, file_path: Path, dry_run: bool, update: bool):
    """Apply the '# EDIT COMMENT' section at the end of FILE_PATH."""
    try:
        services = Services(config, require_workspace=False)
        result = services.comments.update_draft(file_path, update=update, dry_run=dry_run)
    except TwistSyncError as e:
        _fail(e)

    if isinstance(result, ParsedSection):
        _echo_preview("update comment", str(result.params.get("id")), result)
        click.echo("Dry run completed successfully")
    elif isinstance(result, CommentDTO):
        click.echo(f"Comment updated successfully (Comment {result.id})")


@cli.command("print-thread")
@click.argument("thread_id", type=int)
@click.option("--timezone", default=None, callback=_validate_timezone,
              help="Timezone for timestamps (default: sync.timezone)")
@click.pass_obj
def print_thread(config: ConfigManager, thread_id: int, timezone: Optional[str]):
    """Print a thread in the local file format without writing it."""
    try:
        services = Services(config, require_workspace=False)
        text = services.sync.thread_to_string(thread_id, timezone)
    except TwistSyncError as e:
        _fail(e)
    click.echo(text, nl=False)


@cli.command()
@click.option("--archived", is_flag=True, help="Include archived channels")
@click.pass_obj
def channels(config: ConfigManager, archived: bool):
    """List the workspace's channels and their local directory names."""
    try:
        services = Services(config)
        found = services.sync.list_channels(archived=archived)
    except TwistSyncError as e:
        _fail(e)

    for channel in found:
        marker = " (archived)" if channel.archived else ""
        click.echo(f"{channel.id}\t{channel.name}{marker}\t{channel_dir_name(channel)}")


def main():
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
