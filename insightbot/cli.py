"""
InsightBot CLI

Command-line interface for interacting with InsightBot.

Usage:
    insightbot ask "quantos leads qualificados temos?"   # Single question
    insightbot ask "..." --debug                          # Show pipeline details
    insightbot chat                                       # Interactive REPL mode
    insightbot status                                     # Settings, database and LLM checks
"""

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from insightbot import __version__
from insightbot.config import get_settings
from insightbot.connectors.postgres import PostgresStore
from insightbot.llm.factory import LLMProviderFactory
from insightbot.models import PipelineResponse
from insightbot.pipeline.orchestrator import InsightPipeline, create_pipeline

console = Console()

EXIT_COMMANDS = {"exit", "quit", "sair", "q"}


def configure_cli_logging(debug: bool = False) -> None:
    if debug:
        logging.disable(logging.NOTSET)
        logging.getLogger("insightbot").setLevel(logging.DEBUG)
        return
    logging.disable(logging.CRITICAL)
    for logger_name in ("insightbot", "httpx", "anthropic", "openai", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


def _print_response(response: PipelineResponse, debug: bool = False) -> None:
    """Display the answer and, in debug mode, how it was produced."""
    border = "red" if response.route == "error" else "green"
    console.print(
        Panel(Markdown(response.response_text), title="[bold]InsightBot[/bold]", border_style=border)
    )

    if not debug:
        return

    table = Table(title="Pipeline", show_header=True, header_style="bold cyan")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Route", response.route)
    table.add_row("States", " → ".join(response.states))
    if response.fast_path_category:
        table.add_row("Fast path", response.fast_path_category)
    if response.intent:
        table.add_row("Intent", response.intent.model_dump_json())
    if response.query_result and response.query_result.strategy:
        table.add_row("Query", response.query_result.strategy.query_text)
    if response.query_result and response.query_result.warnings:
        table.add_row("Ignored", "\n".join(response.query_result.warnings))
    if response.error:
        table.add_row("Error", response.error)
    console.print(table)


async def _close(pipeline: InsightPipeline | None) -> None:
    if pipeline is None:
        return
    try:
        await pipeline.store.close()
    except Exception as e:
        console.print(f"[yellow]Warning: failed to close database: {e}[/yellow]")


@click.group()
@click.version_option(version=__version__, prog_name="InsightBot")
def cli():
    """InsightBot - Natural language analytics over your lead database."""
    configure_cli_logging()


@cli.command()
@click.argument("question")
@click.option("--debug", is_flag=True, help="Show route, intent and query details")
def ask(question: str, debug: bool):
    """Ask a single question and exit."""
    configure_cli_logging(debug)

    async def run_query():
        pipeline = None
        try:
            pipeline = await create_pipeline()
            with console.status("[cyan]Analisando...[/cyan]", spinner="dots"):
                response = await pipeline.run(question)
            _print_response(response, debug=debug)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            sys.exit(1)
        finally:
            await _close(pipeline)

    asyncio.run(run_query())


@cli.command()
@click.option("--debug", is_flag=True, help="Show route, intent and query details")
def chat(debug: bool):
    """Interactive REPL mode; conversation context is kept across turns."""
    configure_cli_logging(debug)
    console.print(
        Panel.fit(
            "[bold green]InsightBot Interactive Mode[/bold green]\n"
            "Pergunte em linguagem natural. Digite 'sair' ou 'exit' para encerrar.",
            border_style="green",
        )
    )

    async def run_chat():
        pipeline = None
        try:
            pipeline = await create_pipeline()
            while True:
                try:
                    message = console.input("[bold cyan]Você:[/bold cyan] ")
                except (EOFError, KeyboardInterrupt):
                    console.print("\n[yellow]Até logo![/yellow]")
                    break

                if not message.strip():
                    continue
                if message.strip().lower() in EXIT_COMMANDS:
                    console.print("[yellow]Até logo![/yellow]")
                    break

                with console.status("[cyan]Analisando...[/cyan]", spinner="dots"):
                    response = await pipeline.run(message)
                _print_response(response, debug=debug)
        except Exception as e:
            console.print(f"[red]Failed to initialize pipeline: {e}[/red]")
            sys.exit(1)
        finally:
            await _close(pipeline)

    asyncio.run(run_chat())


@cli.command()
def status():
    """Show configuration, database and LLM status."""

    async def check_status():
        table = Table(title="InsightBot Status", show_header=True, header_style="bold cyan")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        settings = get_settings()
        table.add_row("Configuration", "✓", f"Environment: {settings.environment}")

        # Database
        if settings.store.url:
            store = PostgresStore.from_url(
                str(settings.store.url),
                schema_name=settings.store.schema_name,
                timeout=settings.store.timeout,
            )
            try:
                await store.connect()
                tables = await store.list_tables()
                if tables.success:
                    table.add_row("Database", "✓", f"{len(tables.data)} tables")
                else:
                    table.add_row("Database", "✗", f"Error: {str(tables.error)[:50]}")
            except Exception as e:
                table.add_row("Database", "✗", f"Error: {str(e)[:50]}")
            finally:
                await store.close()
        else:
            table.add_row("Database", "✗", "STORE_URL not set")

        # LLM
        try:
            provider = LLMProviderFactory.create_default_provider(settings.llm)
            if await provider.ping():
                table.add_row("LLM", "✓", f"{provider.provider_name}: {provider.model}")
            else:
                table.add_row("LLM", "✗", f"{provider.provider_name}: no response")
        except Exception as e:
            table.add_row("LLM", "✗", f"Error: {str(e)[:50]}")

        console.print(table)

    asyncio.run(check_status())


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
