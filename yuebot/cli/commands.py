"""CLI commands for yuebot."""

import asyncio
import sys

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from yuebot import __logo__, __version__

app = typer.Typer(
    name="yuebot",
    help=f"{__logo__} yuebot - persona chat bot with long-term memory",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} yuebot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """yuebot - persona chat bot with long-term memory."""
    pass


def _setup_logging(verbose: bool) -> None:
    """Console sink without audit records; DEBUG when verbose."""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        filter=lambda record: "audit" not in record["extra"],
    )


# ============================================================================
# Run
# ============================================================================


@app.command()
def run(
    verbose: bool = typer.Option(False, "--verbose", help="Verbose output"),
):
    """Connect to the enabled channels and start answering."""
    from yuebot.agent.actions import AdminActions
    from yuebot.agent.condenser import Condenser
    from yuebot.agent.context import ContextBuilder
    from yuebot.agent.gate import ResponseGate
    from yuebot.agent.generator import ResponseGenerator
    from yuebot.agent.loop import AgentLoop
    from yuebot.agent.memory import MemoryStore
    from yuebot.audit import add_audit_sink, audit
    from yuebot.bus.queue import MessageBus
    from yuebot.channels.manager import ChannelManager
    from yuebot.config.loader import load_config
    from yuebot.lifecycle.service import LifecycleController
    from yuebot.managed import ManagedProcessError, get_manager
    from yuebot.providers.litellm_provider import LiteLLMProvider

    _setup_logging(verbose)
    config = load_config()
    add_audit_sink(config.storage.audit_path)

    if not config.provider.api_key:
        console.print("[red]Error: no API key configured (provider.apiKey or DEEPSEEK_API_KEY)[/red]")
        raise typer.Exit(1)

    console.print(f"{__logo__} Starting yuebot as {config.agent.name}...")
    audit("startup", model=config.agent.model, scope_mode=config.agent.scope_mode)

    bus = MessageBus()
    provider = LiteLLMProvider(
        api_key=config.provider.api_key,
        api_base=config.provider.api_base,
        default_model=config.agent.model,
    )

    store = MemoryStore(
        history_path=config.storage.history_path,
        memory_path=config.storage.memory_path,
        mode=config.agent.scope_mode,
        max_history=config.agent.max_history,
    )
    store.load()

    actions = None
    if config.admin.enabled:
        try:
            actions = AdminActions(get_manager(config.admin.process), config.admin.admin_ids)
            console.print(f"[green]✓[/green] Admin actions: {config.admin.process.label}")
        except ManagedProcessError as e:
            console.print(f"[yellow]Warning: admin actions disabled ({e})[/yellow]")

    condenser = Condenser(
        provider,
        model=config.agent.model,
        interval=config.agent.condense_interval,
        max_summaries=config.agent.max_summaries,
        max_facts=config.agent.max_facts,
        name=config.agent.name,
    )
    gate = ResponseGate(config.gate, name=config.agent.name, provider=provider, model=config.agent.model)
    generator = ResponseGenerator(
        provider,
        store,
        condenser,
        ContextBuilder(config.agent.name, config.agent.persona),
        config.agent,
        actions=actions,
    )
    agent = AgentLoop(bus, store, gate, generator, slow_reply_seconds=config.agent.slow_reply_seconds)

    channels = ChannelManager(config, bus)
    if channels.enabled_channels:
        console.print(f"[green]✓[/green] Channels enabled: {', '.join(channels.enabled_channels)}")
    else:
        console.print("[red]Error: no channels enabled (channels.discord or channels.telegram)[/red]")
        raise typer.Exit(1)

    lifecycle = LifecycleController(
        store,
        channels,
        agent,
        history_interval_s=config.storage.history_flush_seconds,
        memory_interval_s=config.storage.memory_flush_seconds,
    )

    async def main_loop() -> int:
        loop = asyncio.get_running_loop()
        lifecycle.install_signal_handlers(loop)
        loop.set_exception_handler(lifecycle.handle_exception)

        await lifecycle.start()
        runners = [
            asyncio.create_task(agent.run(), name="agent"),
            asyncio.create_task(channels.start_all(), name="channels"),
        ]
        for task in runners:
            lifecycle.watch(task)

        code = await lifecycle.wait_stopped()
        for task in runners:
            task.cancel()
        await asyncio.gather(*runners, return_exceptions=True)
        return code

    code = asyncio.run(main_loop())
    console.print("Goodbye.")
    raise typer.Exit(code)


# ============================================================================
# Memory
# ============================================================================


@app.command()
def memory():
    """Show what is remembered per scope."""
    from yuebot.agent.memory import MemoryStore
    from yuebot.config.loader import load_config

    logger.remove()
    config = load_config()
    store = MemoryStore(
        history_path=config.storage.history_path,
        memory_path=config.storage.memory_path,
        mode=config.agent.scope_mode,
        max_history=config.agent.max_history,
    )
    store.load()

    scopes = store.scopes()
    if not scopes:
        console.print("Nothing remembered yet.")
        return

    table = Table(title=f"Memory ({config.agent.scope_mode})")
    table.add_column("Scope", style="cyan")
    table.add_column("Turns")
    table.add_column("Condensed")
    table.add_column("Summaries")
    table.add_column("Facts")
    table.add_column("Identities", style="yellow")

    for scope_id, scope in scopes.items():
        identities = ", ".join(r.current_label for r in scope.memory.identities.values())
        table.add_row(
            scope_id,
            str(len(scope.turns)),
            str(len(scope.turns) - scope.fresh_count),
            str(len(scope.memory.summaries)),
            str(len(scope.memory.facts)),
            identities or "[dim]-[/dim]",
        )

    console.print(table)


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show configuration and channel status."""
    from yuebot.config.loader import get_config_path, load_config

    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} yuebot Status\n")
    console.print(
        f"Config: {config_path} "
        f"{'[green]✓[/green]' if config_path.exists() else '[dim]not found, using defaults[/dim]'}"
    )
    console.print(f"Model: {config.agent.model}")
    console.print(f"Data: {config.storage.data_path}")

    table = Table(title="Channel Status")
    table.add_column("Channel", style="cyan")
    table.add_column("Enabled", style="green")
    table.add_column("Configuration", style="yellow")

    for name, ch in (("Discord", config.channels.discord), ("Telegram", config.channels.telegram)):
        token = f"token: {ch.token[:10]}..." if ch.token else "[dim]not configured[/dim]"
        table.add_row(name, "✓" if ch.enabled else "✗", token)

    console.print(table)


if __name__ == "__main__":
    app()
