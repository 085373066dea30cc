"""Command-line interface for the Auto-Create quiz pipeline."""

import asyncio
import json
import mimetypes
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autoquiz.config import get_settings
from autoquiz.config.logging_config import configure_logging
from autoquiz.errors import AutoCreateError
from autoquiz.models import FileSource, Submission
from autoquiz.pipeline import build_pipeline

app = typer.Typer(
    name="autoquiz",
    help="Auto-Create - generate multiple-choice quizzes from documents, links and topics",
    add_completion=False,
)
console = Console()


@app.command()
def generate(
    files: list[Path] = typer.Argument(
        None,
        help="Documents or images to build questions from",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    topic: str = typer.Option(None, "--topic", "-t", help="Free-text topic"),
    url: str = typer.Option(None, "--url", "-u", help="Web page or YouTube link"),
    count: int = typer.Option(10, "--count", "-n", help="Number of questions (5-50)"),
    difficulty: str = typer.Option("Medium", "--difficulty", "-d", help="Easy, Medium or Hard"),
    language: str = typer.Option("English", "--language", "-l", help="Output language"),
    identity: str = typer.Option("cli", "--identity", help="Identity used for quota accounting"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the full JSON response to this file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Generate a quiz from files, a topic and/or a link."""
    configure_logging("DEBUG" if verbose else "WARNING")

    sources = [
        FileSource(filename=path.name, data=path.read_bytes(), mime_hint=mimetypes.guess_type(path.name)[0])
        for path in files or []
    ]
    submission = Submission(
        files=sources,
        topic=topic,
        url=url,
        number_of_questions=count,
        difficulty=difficulty,
        language=language,
    )

    console.print(
        Panel.fit(
            "[bold blue]Auto-Create[/bold blue]\n"
            f"{len(sources)} file(s), topic: {'yes' if topic else 'no'}, link: {'yes' if url else 'no'}",
            border_style="blue",
        )
    )

    pipeline = build_pipeline()
    try:
        with console.status("Extracting content and generating questions..."):
            response = asyncio.run(pipeline.run(submission, identity))
    except AutoCreateError as e:
        console.print(f"\n[red]{e.error_kind.value.title()} error:[/red] {e.message}")
        if verbose and e.details:
            console.print_json(data=e.details)
        raise typer.Exit(code=1)

    body = response.model_dump(by_alias=True, mode="json")
    _display_questions(body["data"])

    if output is not None:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(body, f, indent=2, ensure_ascii=False)
        console.print(f"\n[green]Saved to:[/green] {output}")


@app.command()
def usage(identity: str = typer.Argument("cli", help="Identity to report on")) -> None:
    """Show today's quota and usage totals for an identity."""
    configure_logging("WARNING")
    guard = build_pipeline().guard
    decision = guard.status(identity)
    stats = guard.stats(identity)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Used today", f"{decision.current_usage} / {decision.limit}")
    table.add_row("Remaining", str(decision.remaining))
    table.add_row("Resets at", decision.reset_at.isoformat())
    table.add_row("Last 7 days", str(stats.this_week))
    table.add_row("Last 30 days", str(stats.this_month))
    table.add_row("All time", str(stats.total))
    if not decision.durable:
        table.add_row("Storage", "[yellow]in-memory fallback[/yellow]")
    console.print(table)


@app.command()
def providers() -> None:
    """List generation providers in fallback order."""
    settings = get_settings()
    pipeline = build_pipeline(settings)

    table = Table(title="Generation providers")
    table.add_column("#", justify="right")
    table.add_column("Provider")
    table.add_column("Configured")
    for status in pipeline.generator.provider_status():
        configured = "[green]yes[/green]" if status["configured"] else "[red]no[/red]"
        table.add_row(str(status["order"] + 1), status["name"], configured)
    console.print(table)


def _display_questions(data: dict) -> None:
    """Print the generated questions and a metadata summary."""
    letters = "ABCD"
    for number, question in enumerate(data["questions"], 1):
        console.print(f"\n[bold]{number}. {question['text']}[/bold]")
        for i, option in enumerate(question["options"]):
            marker = "[green]*[/green]" if i == question["correctOptionIndex"] else " "
            console.print(f"  {marker} {letters[i]}) {option}")
        if question.get("explanation"):
            console.print(f"    [dim]{question['explanation']}[/dim]")

    meta = data["metadata"]
    console.print("\n[bold]Summary[/bold]")
    console.print("-" * 40)
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Questions", f"{meta['questionsGenerated']} / {meta['numberOfQuestions']}")
    table.add_row("Provider", meta["providerUsed"] + (" (fallback)" if meta["fallbackUsed"] else ""))
    table.add_row("Content quality", f"{meta['overallQuality']:.1f} / 10")
    table.add_row("Content type", meta["contentType"])
    table.add_row("Remaining today", str(meta["remainingUsage"]))
    table.add_row("Time", f"{meta['processingTimeMs'] / 1000:.1f}s")
    console.print(table)

    failed = [s for s in meta["sources"] if not s["success"]]
    if failed:
        console.print(f"\n[yellow]{len(failed)} source(s) could not be used:[/yellow]")
        for source in failed:
            console.print(f"  - {source['sourceRef']}: {source['error']}")


if __name__ == "__main__":
    app()
