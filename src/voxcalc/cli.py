"""
Command-line interface for VoxCalc.

Provides commands for:
- Evaluating a single expression
- Canonicalizing a spoken transcript
- An interactive keypad session
- Showing configuration
- Running the API server
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from voxcalc.config import apply_overrides, configure_logging, load_yaml_config, settings, voice_config
from voxcalc.fallback import FallbackInterpreter
from voxcalc.models import AngleMode, Failure
from voxcalc.pipeline import ExpressionPipeline
from voxcalc.session import DECLINED_MARKER, UNAVAILABLE_MARKER, CalculatorSession, failure_marker
from voxcalc.transcript import canonicalize_transcript
from voxcalc.voice import QueueSpeechBackend

app = typer.Typer(
    name="voxcalc",
    help="VoxCalc - keypad & voice expression evaluator",
    add_completion=False,
)

console = Console()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
):
    """VoxCalc command line."""
    if config is not None:
        if not config.exists():
            console.print(f"[red]Config file not found: {config}[/]")
            raise typer.Exit(1)
        apply_overrides(load_yaml_config(config))
    configure_logging("DEBUG" if verbose else "WARNING")


def _build_pipeline(fallback: bool) -> ExpressionPipeline:
    if fallback:
        return ExpressionPipeline()
    return ExpressionPipeline(FallbackInterpreter(provider_name="none"))


# =============================================================================
# One-shot Commands
# =============================================================================

@app.command("eval")
def eval_expression(
    expression: str = typer.Argument(..., help="Expression to evaluate"),
    degrees: bool = typer.Option(False, "--degrees", "-d", help="Trig functions use degrees"),
    fallback: bool = typer.Option(True, "--fallback/--no-fallback", help="Use the fallback interpreter"),
):
    """Evaluate one expression."""
    pipeline = _build_pipeline(fallback)
    angle_mode = AngleMode.DEGREES if degrees else AngleMode.RADIANS

    outcome = asyncio.run(pipeline.run(expression, angle_mode))

    if isinstance(outcome, Failure):
        console.print(f"[red]{failure_marker(outcome)}[/]")
        if outcome.detail:
            console.print(f"[dim]{outcome.detail}[/]")
        raise typer.Exit(1)

    suffix = " [dim](fallback)[/]" if outcome.via_fallback else ""
    console.print(f"{outcome.text}{suffix}", highlight=False)


@app.command()
def canonicalize(
    transcript: str = typer.Argument(..., help="Spoken transcript"),
):
    """Show the calculator tokens a transcript dictates."""
    console.print(canonicalize_transcript(transcript), highlight=False)


@app.command("config")
def show_config():
    """Show the effective configuration."""
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        if name.endswith("api_key"):
            value = "set" if value else "-"
        table.add_row(name, str(value))
    for name, value in voice_config.model_dump().items():
        table.add_row(f"voice.{name}", str(value))

    console.print(table)


# =============================================================================
# Interactive Session
# =============================================================================

REPL_HELP = """[bold]Keypad[/]
  Enter keypad tokens separated by spaces, e.g. [cyan]2 + 3 =[/] or [cyan]sin 90 ) =[/].
  Special keys: AC = DEL Deg 2nd sin cos tan lg ln √ x^y 1/x ! e π ( ) MIC
  Any other token is typed as-is.

[bold]Commands[/]
  :say TEXT    dictate TEXT as one utterance
  :history     list history
  :select N    load history entry N
  :help        show this help
  :quit        leave"""


def _render(session: CalculatorSession) -> None:
    display = session.display()
    flags = [display.angle_mode.value]
    if display.modifier.value == "second":
        flags.append("2nd")
    if display.is_fallback_result:
        flags.append("fallback")
    if display.is_listening:
        flags.append("listening")

    console.print(f"  [dim]{escape(display.input_text) or ' '}[/]", highlight=False)
    color = "red" if display.result_text in (DECLINED_MARKER, UNAVAILABLE_MARKER) else "bold green"
    console.print(f"  [{color}]{escape(display.result_text)}[/]  [dim]{' '.join(flags)}[/]", highlight=False)
    if display.notification:
        console.print(f"  [yellow]{escape(display.notification)}[/]")
        session.notification = None


def _render_history(session: CalculatorSession) -> None:
    if not len(session.history):
        console.print("[yellow]No history yet[/]")
        return

    table = Table(title="History")
    table.add_column("#", style="dim")
    table.add_column("Input", style="cyan")
    table.add_column("Result", style="green")
    table.add_column("Time", style="blue")

    for index, entry in enumerate(session.history.entries):
        table.add_row(str(index), escape(entry.input_text), escape(entry.result_text), entry.timestamp.strftime("%H:%M:%S"))

    console.print(table)


async def _dictate(session: CalculatorSession, backend: QueueSpeechBackend, text: str) -> None:
    if not session.voice.is_listening and not await session.start_capture():
        return
    backend.submit(text)
    if session.voice.continuous:
        await asyncio.sleep(0)
    else:
        await session.voice.wait()


async def _handle_line(session: CalculatorSession, backend: QueueSpeechBackend, line: str) -> bool:
    """Process one REPL line. Returns False to leave."""
    if line.startswith(":"):
        command, _, argument = line[1:].partition(" ")
        if command in ("quit", "exit", "q"):
            return False
        if command == "help":
            console.print(REPL_HELP)
        elif command == "history":
            _render_history(session)
        elif command == "select":
            try:
                session.select_history(int(argument))
            except (ValueError, IndexError):
                console.print(f"[red]No history entry: {argument}[/]")
        elif command == "say":
            await _dictate(session, backend, argument)
        else:
            console.print(f"[red]Unknown command: {command}[/]")
        return True

    for token in line.split():
        await session.press(token)
    return True


@app.command()
def repl(
    degrees: bool = typer.Option(False, "--degrees", "-d", help="Start in degree mode"),
    fallback: bool = typer.Option(True, "--fallback/--no-fallback", help="Use the fallback interpreter"),
):
    """Start an interactive keypad session."""
    backend = QueueSpeechBackend()
    session = CalculatorSession(pipeline=_build_pipeline(fallback), speech_backend=backend)
    if degrees:
        session.toggle_angle_mode()

    console.print("[bold green]VoxCalc[/] - type [cyan]:help[/] for keys and commands")

    async def _loop():
        try:
            while True:
                try:
                    line = await asyncio.to_thread(console.input, "[bold]calc>[/] ")
                except EOFError:
                    break
                line = line.strip()
                if not line:
                    continue
                if not await _handle_line(session, backend, line):
                    break
                _render(session)
        finally:
            await session.close()

    try:
        asyncio.run(_loop())
    except KeyboardInterrupt:
        pass
    console.print("Goodbye!")


# =============================================================================
# Server Commands
# =============================================================================

@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind to"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind to"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
):
    """Start the VoxCalc API server."""
    import uvicorn

    host = host or settings.host
    port = port or settings.port
    configure_logging(settings.log_level)

    console.print(f"[bold green]Starting VoxCalc server on {host}:{port}[/]")

    # One worker: sessions live in process memory
    uvicorn.run(
        "voxcalc.api:app",
        host=host,
        port=port,
        reload=reload,
        workers=1,
    )


if __name__ == "__main__":
    app()
