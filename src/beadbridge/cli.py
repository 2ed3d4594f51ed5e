"""
beadbridge Command Line Interface.

This module provides the CLI entry point for running and inspecting the bridge.
"""

import asyncio
import signal
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from beadbridge.version import __version__

console = Console()


def run_async(coro):
    """Run an async coroutine in a new event loop."""
    return asyncio.run(coro)


def _load(config_path: str | None):
    from beadbridge.config import load_config, load_config_from_env

    if config_path:
        return load_config(config_path)
    return load_config_from_env()


@click.group()
@click.version_option(version=__version__, prog_name="beadbridge")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """beadbridge: Event-driven bridge from beads to Slack and JIRA.

    Turns bead lifecycle events into Slack notifications and agent nudges,
    syncs progress back to JIRA, and ingests JIRA issues as beads.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path


@main.command()
@click.option("--no-jira", is_flag=True, help="Disable JIRA polling and sync-back")
@click.option("--no-slack", is_flag=True, help="Disable Slack notifications")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Log Slack messages instead of posting them",
)
@click.pass_context
def run(ctx: click.Context, no_jira: bool, no_slack: bool, dry_run: bool) -> None:
    """Run the bridge until interrupted."""
    from beadbridge.config import ConfigurationError
    from beadbridge.service import BridgeError, BridgeService
    from beadbridge.utils import configure_logging

    verbose = ctx.obj.get("verbose", False)

    try:
        cfg = _load(ctx.obj.get("config_path"))
        if dry_run:
            cfg.dry_run = True
        configure_logging(cfg.logging, verbose=verbose or cfg.debug)

        service = BridgeService(cfg, enable_jira=not no_jira, enable_slack=not no_slack)
        components = service.components

        console.print(
            Panel(
                f"[bold blue]beadbridge v{__version__}[/bold blue]\n"
                "Beads to Slack and JIRA bridge",
                title="beadbridge",
            )
        )
        table = Table(show_header=False, box=None)
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Beads daemon", components.beads.base_url)
        table.add_row("Watchers", ", ".join(components.watchers) or "(none)")
        table.add_row("Slack", "enabled" if components.slack else "disabled")
        table.add_row("JIRA", components.jira.base_url if components.jira else "disabled")
        table.add_row("Dry run", str(cfg.dry_run))
        console.print(table)
        console.print()

        run_async(_run_until_signal(service))

    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)
    except (FileNotFoundError, BridgeError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)


async def _run_until_signal(service) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops; KeyboardInterrupt still ends the run
            pass
    await service.run(stop_event)


@main.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Display the effective configuration and missing credentials."""
    from beadbridge.config import ConfigurationError, validate_environment

    try:
        cfg = _load(ctx.obj.get("config_path"))
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    console.print(Panel("[bold blue]beadbridge Configuration[/bold blue]", title="Configuration"))

    table = Table(title="Effective settings")
    table.add_column("Section", style="cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("beads", "http_addr", cfg.beads.http_addr)
    table.add_row("jira", "enabled", str(cfg.jira.enabled))
    if cfg.jira.enabled:
        table.add_row("jira", "base_url", cfg.jira.base_url)
        table.add_row("jira", "projects", ", ".join(cfg.jira.projects))
        table.add_row("jira", "statuses", ", ".join(cfg.jira.statuses))
        table.add_row("jira", "issue_types", ", ".join(cfg.jira.issue_types))
        table.add_row("jira", "poll_interval", f"{cfg.jira.poll_interval_seconds:g}s")
        table.add_row("jira", "disable_transitions", str(cfg.jira.disable_transitions))
        for prefix, name in sorted(cfg.jira.project_map.items()):
            table.add_row("jira", f"project_map[{prefix}]", name)
    table.add_row("slack", "enabled", str(cfg.slack.enabled))
    table.add_row("router", "default_channel", cfg.router.default_channel or "(unset)")
    table.add_row("router", "rules", str(len(cfg.router.channels)))
    table.add_row("router", "overrides", str(len(cfg.router.overrides)))
    for name, enabled in cfg.watchers.model_dump().items():
        table.add_row("watchers", name, str(enabled))
    table.add_row("logging", "level", cfg.logging.level.value)
    table.add_row("", "dry_run", str(cfg.dry_run))
    console.print(table)

    missing = validate_environment(
        require_jira=cfg.jira.enabled,
        require_slack=cfg.slack.enabled and not cfg.dry_run,
        jira_token_env=cfg.jira.api_token_env,
        slack_token_env=cfg.slack.bot_token_env,
        jira_email=cfg.jira.email,
    )

    if missing:
        console.print(f"[yellow]Missing credentials:[/yellow] {', '.join(missing)}")
        sys.exit(1)
    console.print("[green]Configuration OK[/green]")


@main.command()
@click.argument("identity")
@click.pass_context
def route(ctx: click.Context, identity: str) -> None:
    """Show which Slack channel IDENTITY (project/role/name) routes to."""
    from beadbridge.bridge import ChannelRouter
    from beadbridge.config import ConfigurationError

    try:
        cfg = _load(ctx.obj.get("config_path"))
    except (FileNotFoundError, ConfigurationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    router = ChannelRouter(cfg.router)
    result = router.resolve(identity)
    if not result.channel:
        console.print(f"[yellow]No channel for {identity}[/yellow] (no rule and no default)")
        sys.exit(1)

    console.print(f"[bold]{identity}[/bold] -> [green]{result.channel}[/green]")
    console.print(f"[dim]matched by {result.matched_by}[/dim]")

    if ctx.obj.get("verbose"):
        console.print()
        console.print("[bold]Rules by priority:[/bold]")
        for pattern in router.ranked_patterns():
            console.print(f"  {pattern}")


@main.command("poll-once")
@click.pass_context
def poll_once(ctx: click.Context) -> None:
    """Run JIRA catch-up and a single poll cycle."""
    from beadbridge.beads import BeadsClient
    from beadbridge.bridge import JiraPoller, PollerConfig
    from beadbridge.config import ConfigurationError
    from beadbridge.integrations import JiraClient, JiraError
    from beadbridge.utils import configure_logging

    verbose = ctx.obj.get("verbose", False)

    try:
        cfg = _load(ctx.obj.get("config_path"))
        configure_logging(cfg.logging, verbose=verbose or cfg.debug)
        if not cfg.jira.enabled:
            console.print("[yellow]JIRA is not enabled[/yellow] (set jira.enabled)")
            sys.exit(1)
        jira = JiraClient.from_config(cfg.jira)
    except (FileNotFoundError, ConfigurationError, JiraError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    async def _poll():
        async with jira, BeadsClient(cfg.beads) as beads:
            poller = JiraPoller(jira, beads, PollerConfig.from_config(cfg.jira))
            tracked = await poller.catch_up()
            return tracked, await poller.poll_once()

    tracked, result = run_async(_poll())

    table = Table(title="JIRA poll")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Tracked at start", str(tracked))
    table.add_row("Found", str(result.found))
    table.add_row("Created", str(result.created))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Failed", str(result.failed))
    console.print(table)

    if result.error:
        console.print(f"[red]Search failed:[/red] {result.error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
