"""CLI entry point for foreman."""

from __future__ import annotations

import asyncio
import logging
import os

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from foreman.agent.prompt import generate_goals
from foreman.config import DEFAULT_CONFIG_PATH, ForemanConfig
from foreman.errors import ForemanError
from foreman.session.wire import EventType, Wire, WireEvent

app = typer.Typer(
    name="foreman",
    help="An autonomous agent that works through its end goals one command at a time.",
    no_args_is_help=True,
)

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def render_event(event: WireEvent, out: Console = console) -> None:
    """Print one wire event."""
    d = event.data

    if event.type == EventType.CYCLE_BEGIN:
        out.rule(f"Cycle {d.get('cycle', '?')}  ({d.get('tokens', 0):,} tokens)")

    elif event.type == EventType.THOUGHT:
        for point in d.get("points", []):
            out.print(f"[bold]-[/bold] {escape(point)}")
        if d.get("endgoal"):
            out.print(f"[cyan]Endgoal:[/cyan] {escape(d['endgoal'])}")
        for i, step in enumerate(d.get("plan", []), 1):
            out.print(f"  [dim]{i}.[/dim] {escape(step)}")
        if d.get("step"):
            out.print(f"[cyan]Step:[/cyan] {escape(d['step'])}")
        for command in d.get("commands", []):
            out.print(f"[green]>[/green] {escape(command.get('name', '?'))} {escape(str(command.get('args', [])))}")

    elif event.type == EventType.TRANSCRIPT:
        text = "\n".join(d.get("lines", []))
        out.print(Panel(escape(text), title="Results", border_style="dim"))

    elif event.type == EventType.RETRY:
        out.print(
            f"[yellow]Attempt {d.get('attempt')}/{d.get('attempts')} failed:[/yellow] "
            f"{escape(d.get('error', ''))}"
        )

    elif event.type == EventType.RESET:
        out.print(f"[red]Context reset[/red] after {d.get('steps', 0)} removals")

    elif event.type == EventType.GOAL_ADVANCED:
        out.print(f"[bold magenta]Next endgoal:[/bold magenta] {escape(d.get('goal', ''))}")

    elif event.type == EventType.EVICTION:
        out.print(
            f"[dim]Forgot {d.get('removed', 0)} messages: "
            f"{d.get('tokens_before', 0):,} -> {d.get('tokens_after', 0):,} tokens[/dim]"
        )

    elif event.type == EventType.MINION_SCRIPT:
        out.print(
            Panel(
                escape(d.get("script", "")),
                title=f"Minion script (attempt {d.get('attempt', '?')})",
                border_style="blue",
            )
        )

    elif event.type == EventType.MINION_REPORT:
        out.print(Panel(escape(d.get("report", "")), title="Minion report", border_style="green"))

    elif event.type == EventType.STATUS:
        out.print(escape(d.get("message", "")))

    elif event.type == EventType.ERROR:
        out.print(f"[bold red]ERROR:[/bold red] {escape(d.get('error', 'Unknown error'))}")


async def _consume_wire(queue: asyncio.Queue[WireEvent | None]) -> None:
    while True:
        event = await queue.get()
        if event is None:
            break
        render_event(event)


async def _run_agent(config: ForemanConfig, max_cycles: int | None) -> int:
    from foreman.agent.setup import setup_agent

    wire = Wire()
    queue = wire.subscribe()
    consumer_task = asyncio.create_task(_consume_wire(queue))

    try:
        agent_setup = await setup_agent(config, wire=wire)

        plugin_names = ", ".join(p.name for p in agent_setup.plugins) or "none"
        console.print(f"[bold]Plugins:[/bold] {escape(plugin_names)}")
        commands = []
        for name in agent_setup.registry.names():
            if name in config.disabled_commands:
                commands.append(f"[strike dim]{escape(name)}[/strike dim]")
            else:
                commands.append(escape(name))
        console.print(f"[bold]Commands:[/bold] {', '.join(commands)}")

        return await agent_setup.runner.run(max_cycles)
    finally:
        wire.close()
        await consumer_task
        wire.unsubscribe(queue)


@app.command()
def run(
    config_file: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Config file path."
    ),
    model: str | None = typer.Option(
        None, "--model", "-m", help="LLM model to use (default: from env/config)."
    ),
    max_cycles: int | None = typer.Option(
        None, "--max-cycles", "-n", help="Stop after this many cycles."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug logging."
    ),
) -> None:
    """Run the agent until its end goals are complete."""
    setup_logging(verbose)

    config = ForemanConfig.load(config_file)
    if model:
        config.llm.model = model

    if not config.agent.goals:
        typer.echo("Error: No end goals configured. Add some under agent.goals.", err=True)
        raise typer.Exit(1)

    console.print(f"[bold]Name:[/bold] {escape(config.agent.name)}")
    console.print(f"[bold]Role:[/bold] {escape(config.agent.role)}")
    console.print("[bold]Goals:[/bold]")
    console.print(escape(generate_goals(config.agent.goals)))

    try:
        cycles = asyncio.run(_run_agent(config, max_cycles))
    except ForemanError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(130)

    console.print(f"\nFinished after {cycles} cycles.")


@app.command()
def init(
    path: str = typer.Argument(DEFAULT_CONFIG_PATH, help="Where to write the config."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write a starter config file."""
    if os.path.exists(path) and not force:
        typer.echo(f"Error: {path} already exists (use --force to overwrite).", err=True)
        raise typer.Exit(1)

    with open(path, "w") as f:
        f.write(ForemanConfig.default_yaml())
    typer.echo(f"Wrote default config to {path}")


@app.command()
def commands(
    config_file: str = typer.Option(
        DEFAULT_CONFIG_PATH, "--config", "-c", help="Config file path."
    ),
) -> None:
    """List the commands the configured plugins provide."""
    from foreman.agent.setup import load_plugins
    from foreman.command.registry import CommandRegistry

    config = ForemanConfig.load(config_file)
    try:
        plugins = load_plugins(config)
        plugins.check_dependencies()
        registry = CommandRegistry()
        plugins.register_commands(registry)
    except ForemanError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    for command in registry.list():
        owner = registry.owner(command.name)
        disabled = " [red](disabled)[/red]" if command.name in config.disabled_commands else ""
        console.print(f"[bold]{escape(command.name)}[/bold] [dim]({owner})[/dim]{disabled}")
        console.print(f"    {escape(command.purpose)}")
        for arg_name, description in command.args:
            console.print(f"    - {escape(arg_name)}: {escape(description)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
