"""Main CLI application using Typer."""
import asyncio
from pathlib import Path

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from ..config import PROVIDERS
from ..conversation import ConversationState, Role
from ..engine import ChatEngine
from ..errors import ChatError, UploadError
from ..registry import normalize_model_name
from .formatting import assets_table, render_result
from .providers import get_engine

# Load environment variables
load_dotenv()

# Create Typer app
app = typer.Typer(
    name="modelchat",
    help="Chat with Gemini or a self-hosted model, grounded in your documents",
    no_args_is_help=True,
    add_completion=True,
)
files_app = typer.Typer(help="Manage grounding documents", no_args_is_help=True)
app.add_typer(files_app, name="files")

# Console for rich output
console = Console()

CHAT_HELP = """[dim]Commands:
  /new                 start a new chat
  /provider NAME       switch provider (gemini, custom)
  /model NAME          select a model from the catalog
  /models              show the model catalog
  /system TEXT|on|off  set or toggle the system context
  /rag on|off          toggle answers grounded in uploaded files
  /files               list uploaded files
  exit, quit, q        leave[/dim]"""


def _status_line(engine: ChatEngine, state: ConversationState) -> str:
    model = state.active_model or engine.provider_config.default_custom_model
    system = "on" if state.system_context_active else "off"
    rag = "on" if state.use_rag else "off"
    return f"[dim]{state.provider} / {model} | system context: {system} | file search: {rag}[/dim]"


def _models_table(engine: ChatEngine, state: ConversationState) -> Table:
    catalog = engine.registry.catalog(state.provider)
    title = f"{state.provider} models"
    if catalog is not None and catalog.offline:
        title += " (built-in defaults)"

    table = Table(title=title)
    table.add_column("Model", style="cyan")
    table.add_column("", style="green")
    best = engine.registry.pick(state.provider)
    for name in (catalog.names if catalog else []):
        marks = []
        if state.active_model and name == normalize_model_name(state.active_model):
            marks.append("selected")
        if name == best:
            marks.append("best")
        table.add_row(name, ", ".join(marks))
    return table


async def _handle_command(engine: ChatEngine, state: ConversationState, line: str) -> ConversationState:
    command, _, arg = line[1:].partition(" ")
    arg = arg.strip()

    if command == "new":
        state = engine.new_chat(state)
        console.print("[dim]New chat started.[/dim]")
    elif command == "provider":
        if arg not in PROVIDERS:
            console.print(f"[yellow]Unknown provider '{arg}'. Choose one of: {', '.join(PROVIDERS)}[/yellow]")
            return state
        state = await engine.switch_provider(state, arg)
        error = engine.registry.error(state.provider)
        if error:
            console.print(f"[yellow]Could not load models ({error}), using defaults[/yellow]")
    elif command == "model":
        catalog = engine.registry.catalog(state.provider)
        if catalog is None or arg not in catalog:
            console.print(f"[yellow]Model '{arg}' is not in the {state.provider} catalog[/yellow]")
            return state
        state.select_model(normalize_model_name(arg))
    elif command == "models":
        console.print(_models_table(engine, state))
    elif command == "system":
        if arg.lower() in ("on", "off"):
            state.use_system_prompt = arg.lower() == "on"
        elif arg:
            state.system_prompt = arg
            state.use_system_prompt = True
        else:
            console.print(f"[dim]System context: {state.system_prompt or '(not set)'}[/dim]")
    elif command == "rag":
        if arg.lower() not in ("on", "off"):
            console.print("[yellow]Usage: /rag on|off[/yellow]")
            return state
        state.use_rag = arg.lower() == "on"
    elif command == "files":
        listing = await engine.assets.list_assets()
        console.print(assets_table(listing.files))
    else:
        console.print(CHAT_HELP)
        return state

    console.print(_status_line(engine, state))
    return state


@app.command()
def chat(
    provider: str | None = typer.Option(
        None,
        "--provider",
        "-p",
        help="Provider to start with: gemini or custom"
    ),
    no_rag: bool = typer.Option(
        False,
        "--no-rag",
        help="Do not search uploaded files for answers"
    ),
    system: str | None = typer.Option(
        None,
        "--system",
        "-s",
        help="System context sent with every message"
    ),
):
    """Interactive chat session."""
    async def _chat():
        engine = get_engine(console)

        try:
            state = engine.new_state()
            if provider:
                if provider not in PROVIDERS:
                    console.print(f"[red]Error: Unknown provider: {provider}[/red]")
                    raise typer.Exit(code=1)
                state.provider = provider
            if system is not None:
                state.system_prompt = system
            state.use_rag = not no_rag

            with console.status("[dim]Loading models...[/dim]"):
                state = await engine.start(state)

            error = engine.registry.error(state.provider)
            if error:
                console.print(f"[yellow]Could not load models ({error}), using defaults[/yellow]")

            console.print("[bold cyan]Modelchat[/bold cyan]")
            console.print(_status_line(engine, state))
            console.print("[dim]Type /help for commands, 'exit', 'quit', or 'q' to leave[/dim]\n")

            while True:
                try:
                    user_input = console.input("[bold yellow]You:[/bold yellow] ")

                    if not user_input.strip():
                        continue

                    if user_input.strip().lower() in ('exit', 'quit', 'q'):
                        console.print("[dim]Goodbye![/dim]")
                        break

                    if user_input.startswith("/"):
                        state = await _handle_command(engine, state, user_input.strip())
                        continue

                    if not engine.can_send(state):
                        console.print("[yellow]Custom server is not configured on the backend[/yellow]")
                        continue

                    with console.status("[dim]typing...[/dim]"):
                        state, reply = await engine.send_message(state, user_input)

                    if reply is None:
                        continue
                    if reply.role == Role.ERROR:
                        console.print(f"[red]{reply.content}[/red]\n")
                        continue

                    console.print(f"[bold green]AI:[/bold green] {reply.content}")
                    if reply.result is not None:
                        console.print(render_result(reply.result))
                    console.print()

                except KeyboardInterrupt:
                    console.print("\n[dim]Goodbye![/dim]")
                    break
                except EOFError:
                    console.print("\n[dim]Goodbye![/dim]")
                    break
                except ChatError as e:
                    console.print(f"[red]Error: {e.detail}[/red]")

        except typer.Exit:
            raise
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            import traceback
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
            raise typer.Exit(code=1)
        finally:
            await engine.close()

    asyncio.run(_chat())


@app.command()
def models(
    provider: str | None = typer.Option(
        None,
        "--provider",
        "-p",
        help="Provider to query: gemini or custom"
    ),
):
    """Show the model catalog and the model that would be selected."""
    async def _models():
        engine = get_engine(console)
        try:
            state = engine.new_state()
            if provider:
                if provider not in PROVIDERS:
                    console.print(f"[red]Error: Unknown provider: {provider}[/red]")
                    raise typer.Exit(code=1)
                state.provider = provider
            state = await engine.start(state)

            error = engine.registry.error(state.provider)
            if error:
                console.print(f"[yellow]Discovery failed: {error}[/yellow]")
            console.print(_models_table(engine, state))

        except ChatError as e:
            console.print(f"[red]Error: {e.detail}[/red]")
            raise typer.Exit(code=1)
        finally:
            await engine.close()

    asyncio.run(_models())


@app.command()
def config():
    """Show the effective configuration."""
    async def _config():
        engine = get_engine(console)
        try:
            provider_config = await engine.load_config()
            settings = engine.settings

            table = Table(title="Configuration", show_header=False)
            table.add_column("Setting", style="cyan")
            table.add_column("Value")
            table.add_row("Backend URL", settings.backend_url)
            table.add_row("Transport", settings.transport)
            table.add_row("Provider", settings.provider)
            table.add_row("Request timeout", f"{settings.request_timeout:g}s")
            table.add_row("Custom server configured", "yes" if provider_config.custom_server_configured else "no")
            table.add_row("Custom model", provider_config.default_custom_model)
            console.print(table)
        finally:
            await engine.close()

    asyncio.run(_config())


@files_app.command("list")
def list_files():
    """List uploaded files."""
    async def _list():
        engine = get_engine(console)
        try:
            listing = await engine.assets.list_assets()
            if not listing.files:
                console.print("[dim]No files uploaded yet.[/dim]")
                return
            console.print(assets_table(listing.files))
            stats = listing.summary()
            console.print(f"[dim]Total files: {stats.total_files} | Total size: {stats.total_size}[/dim]")
        except ChatError as e:
            console.print(f"[red]Error loading files: {e.detail}[/red]")
            raise typer.Exit(code=1)
        finally:
            await engine.close()

    asyncio.run(_list())


@files_app.command("upload")
def upload_files(
    paths: list[Path] = typer.Argument(
        ...,
        exists=True,
        file_okay=True,
        dir_okay=False,
        help="Files to upload (sent concurrently)"
    ),
):
    """Upload one or more files for grounding."""
    async def _upload():
        engine = get_engine(console)
        failures = 0

        try:
            with Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=console,
            ) as progress:

                async def _one(path: Path) -> None:
                    nonlocal failures
                    task_id = progress.add_task(path.name, total=100)
                    try:
                        stream = engine.assets.upload(path)
                        async for percent in stream:
                            progress.update(task_id, completed=percent)
                        progress.console.print(f"[green]File \"{stream.asset.original_name}\" uploaded[/green]")
                    except UploadError as e:
                        failures += 1
                        progress.update(task_id, completed=0)
                        progress.console.print(f"[red]Error: {e.detail}[/red]")

                await asyncio.gather(*(_one(path) for path in paths))
        finally:
            await engine.close()

        if failures:
            raise typer.Exit(code=1)

    asyncio.run(_upload())


@files_app.command("delete")
def delete_file(
    asset_id: str = typer.Argument(..., help="ID of the file to delete"),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip confirmation prompt"
    ),
):
    """Delete an uploaded file."""
    async def _delete():
        engine = get_engine(console)
        try:
            await engine.assets.list_assets()

            def _confirm(name: str) -> bool:
                return yes or typer.confirm(f"Are you sure you want to delete \"{name}\"?")

            if await engine.assets.delete(asset_id, confirm=_confirm):
                console.print(f"[green]Deleted {asset_id}[/green]")
            else:
                console.print("[dim]Aborted.[/dim]")
        except ChatError as e:
            console.print(f"[red]Error deleting file: {e.detail}[/red]")
            raise typer.Exit(code=1)
        finally:
            await engine.close()

    asyncio.run(_delete())


@files_app.command("download")
def download_file(
    asset_id: str = typer.Argument(..., help="ID of the file to download"),
    destination: Path = typer.Argument(
        Path("."),
        help="Target file or directory"
    ),
):
    """Download an uploaded file."""
    async def _download():
        engine = get_engine(console)
        try:
            await engine.assets.list_assets()
            target = await engine.assets.download(asset_id, destination)
            console.print(f"[green]Saved to {target}[/green]")
        except ChatError as e:
            console.print(f"[red]Error downloading file: {e.detail}[/red]")
            raise typer.Exit(code=1)
        finally:
            await engine.close()

    asyncio.run(_download())


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
