import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from amplifier.errors import AmplifierError, ProviderError

load_dotenv()
app = typer.Typer()
console = Console()


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def generate(
    post_file: Path = typer.Argument(help="JSON file holding the post (post_id, url, text, author, ...)"),
    response_type: str = typer.Option("reply", "--type", "-t", help="Response type: 'reply' or 'quote'"),
    feedback: Optional[str] = typer.Option(None, "--feedback", "-f", help="Refinement feedback, e.g. '//shorter'"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
):
    """Draft three responses to a post."""
    _setup_logging(debug)
    if response_type not in ("reply", "quote"):
        console.print(f"[bold red]Error:[/] --type must be 'reply' or 'quote', got '{response_type}'")
        raise typer.Exit(1)

    from amplifier.config.catalog import get_catalog
    from amplifier.config.settings import EnvSettingsProvider
    from amplifier.generation.context_store import ContextStore
    from amplifier.generation.orchestrator import GenerationOrchestrator
    from amplifier.models import PostData
    from amplifier.profile_cache import ProfileCache
    from amplifier.usage import UsageTracker, format_cost, format_tokens

    try:
        post = PostData.model_validate(json.loads(post_file.read_text()))
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[bold red]Error:[/] could not read post from {post_file}: {exc}")
        raise typer.Exit(1)

    catalog = get_catalog()
    tracker = UsageTracker(catalog)
    orchestrator = GenerationOrchestrator(
        EnvSettingsProvider(catalog),
        catalog,
        ContextStore(),
        profiles=ProfileCache(),
        usage=tracker,
    )

    async def _run():
        result = await orchestrator.generate(post, response_type)
        if feedback:
            result = await orchestrator.generate(post, response_type, feedback=feedback)
        return result

    with console.status(f"[bold green]Generating {response_type} drafts..."):
        try:
            result = asyncio.run(_run())
        except ProviderError as exc:
            console.print(f"[bold red]Error:[/] {exc.provider}: {exc.message}")
            raise typer.Exit(1)
        except AmplifierError as exc:
            console.print(f"[bold red]Error:[/] {exc}")
            raise typer.Exit(1)

    if result.analysis:
        console.print(f"[dim]Approach:[/] {result.analysis.get('recommended_approach', '')}")
    for i, draft in enumerate(result.responses, start=1):
        console.print(Panel(draft.text, title=f"#{i} · {draft.tone}", subtitle=f"{len(draft.text)} chars"))
    if result.validation_warning:
        console.print(f"[bold yellow]Warning:[/] {result.validation_warning}")

    totals = tracker.stats()["all_time"]
    console.print(f"[dim]{format_tokens(totals.tokens)} tokens · {format_cost(totals.cost)}[/]")


@app.command("check-key")
def check_key():
    """Verify the configured API key against the provider."""
    from amplifier import providers
    from amplifier.config.settings import EnvSettingsProvider

    settings = asyncio.run(EnvSettingsProvider().get_settings())
    if not settings.api_key:
        console.print("[bold red]Error:[/] no API key configured (AMPLIFIER_API_KEY)")
        raise typer.Exit(1)

    with console.status(f"[bold green]Contacting {settings.provider}..."):
        ok = asyncio.run(providers.test_connection(settings.provider, settings.api_key))
    if ok:
        console.print(f"[bold green]✓[/] {settings.provider} key works")
    else:
        console.print(f"[bold red]✗[/] {settings.provider} rejected the key or is unreachable")
        raise typer.Exit(1)


@app.command("validate-prompt")
def validate_prompt(
    prompt: str = typer.Argument(help="Custom style prompt to review"),
):
    """Ask the provider whether a custom style prompt is acceptable."""
    from amplifier.config.settings import EnvSettingsProvider
    from amplifier.prompts.style_check import validate_style_prompt

    settings = asyncio.run(EnvSettingsProvider().get_settings())
    if not settings.api_key:
        console.print("[bold red]Error:[/] no API key configured (AMPLIFIER_API_KEY)")
        raise typer.Exit(1)

    verdict = asyncio.run(validate_style_prompt(settings.provider, settings.api_key, prompt))
    colour = "green" if verdict.valid else "red"
    console.print(f"[bold {colour}]{'approved' if verdict.valid else 'rejected'}[/] {verdict.reason}")
    if not verdict.valid:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
