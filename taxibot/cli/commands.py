"""CLI commands for taxibot."""

import asyncio
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout

from taxibot import __logo__, __version__

app = typer.Typer(
    name="taxibot",
    help=f"{__logo__} taxibot - taxi fleet chat assistant",
    no_args_is_help=True,
)

console = Console()
EXIT_COMMANDS = {"exit", "quit", "/exit", "/quit", ":q"}
RATE_COMMANDS = {"+": True, "-": False}
OFFLINE_REPLY = "Оператор свяжется с вами в ближайшее время."


def _configure_logging(enabled: bool, level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    if enabled:
        logger.enable("taxibot")
    else:
        logger.disable("taxibot")


def _make_resolver(offline: bool):
    from taxibot.agent.resolver import IntentResolver
    from taxibot.providers.base import StaticProvider
    from taxibot.settings import get_settings

    settings = get_settings()
    if offline:
        return IntentResolver(StaticProvider(OFFLINE_REPLY), settings=settings)
    if not settings.api_key and not settings.api_base:
        console.print("[yellow]Warning: TAXIBOT_API_KEY is not set; generation will likely fail.[/yellow]")
    return IntentResolver.from_settings(settings)


def _print_resolution(resolution) -> None:
    console.print()
    header = f"[cyan]{__logo__} taxibot[/cyan] [dim]({resolution.intent.value}"
    if resolution.confidence is not None:
        header += f", {resolution.confidence:.2f}"
    console.print(header + ")[/dim]")
    console.print(Text(resolution.response))
    for row in resolution.keyboard:
        console.print("  " + "  ".join(f"[bold]{escape(f'[{button.text}]')}[/bold]" for button in row))
    if resolution.interaction_id:
        console.print("[dim]Rate this answer with + or -[/dim]")
    console.print()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} taxibot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """taxibot - taxi fleet chat assistant."""
    pass


# ============================================================================
# Chat
# ============================================================================


@app.command()
def chat(
    message: str = typer.Option(None, "--message", "-m", help="Message to resolve"),
    offline: bool = typer.Option(False, "--offline", help="Answer unresolved messages with a fixed reply"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show taxibot runtime logs during chat"),
):
    """Talk to the resolver directly."""
    from taxibot.settings import get_settings

    _configure_logging(logs, get_settings().log_level)
    resolver = _make_resolver(offline)

    def _thinking_ctx():
        if logs:
            from contextlib import nullcontext
            return nullcontext()
        return console.status("[dim]taxibot is thinking...[/dim]", spinner="dots")

    if message:
        async def run_once():
            with _thinking_ctx():
                resolution = await resolver.resolve(message)
            _print_resolution(resolution)

        asyncio.run(run_once())
        return

    history_file = Path.home() / ".taxibot" / "history" / "cli_history"
    history_file.parent.mkdir(parents=True, exist_ok=True)
    session = PromptSession(history=FileHistory(str(history_file)), multiline=False)
    console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or [bold]Ctrl+C[/bold] to quit)\n")

    async def run_interactive():
        await resolver.start()
        last_interaction: str | None = None
        try:
            while True:
                try:
                    with patch_stdout():
                        user_input = await session.prompt_async(HTML("<b fg='ansiblue'>You:</b> "))
                except (KeyboardInterrupt, EOFError):
                    console.print("\nGoodbye!")
                    break

                command = user_input.strip()
                if not command:
                    continue
                if command.lower() in EXIT_COMMANDS:
                    console.print("\nGoodbye!")
                    break

                if command in RATE_COMMANDS:
                    if last_interaction is None:
                        console.print("[dim]Nothing to rate yet.[/dim]")
                    elif await resolver.feedback(last_interaction, RATE_COMMANDS[command]):
                        console.print("[green]Thanks for the feedback.[/green]")
                        last_interaction = None
                    continue

                with _thinking_ctx():
                    resolution = await resolver.resolve(user_input)
                _print_resolution(resolution)
                last_interaction = resolution.interaction_id
        finally:
            await resolver.stop()

    asyncio.run(run_interactive())


# ============================================================================
# Rule inspection
# ============================================================================


@app.command()
def intents():
    """List intents and the size of their rules."""
    from taxibot.nl.intent_engine import IntentEngine
    from taxibot.nl.intents import META_INTENTS, Intent

    rules = IntentEngine().rules

    table = Table(title="Intents")
    table.add_column("Intent", style="cyan")
    table.add_column("Keywords", justify="right")
    table.add_column("Patterns", justify="right")
    table.add_column("Context", justify="right")

    for intent in Intent:
        rule = rules.get(intent)
        if rule is None:
            note = "meta" if intent in META_INTENTS else "-"
            table.add_row(intent.value, note, note, note)
            continue
        table.add_row(
            intent.value,
            str(len(rule.keywords)),
            str(len(rule.patterns)),
            str(len(rule.context_triggers)),
        )

    console.print(table)


@app.command()
def score(
    text: str = typer.Argument(..., help="Message to score"),
    limit: int = typer.Option(5, "--limit", "-n", help="How many intents to show"),
):
    """Show rule scores for a message."""
    from taxibot.nl.intent_engine import IntentEngine
    from taxibot.nl.normalizer import normalize
    from taxibot.settings import get_settings

    engine = IntentEngine(confidence_threshold=get_settings().confidence_threshold)
    scores = engine.score(text)

    console.print(f"Normalized: [bold]{normalize(text)!r}[/bold]")
    table = Table(title="Rule scores")
    table.add_column("Intent", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Accepted")

    for item in scores[:limit]:
        accepted = item.confidence >= engine.confidence_threshold
        table.add_row(
            item.intent.value,
            f"{item.confidence:.3f}",
            "[green]✓[/green]" if accepted else "[dim]✗[/dim]",
        )

    console.print(table)


if __name__ == "__main__":
    app()
