"""Command-line entry points for the news digest pipeline."""

import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import print as rprint
from rich import print_json
from rich.markup import escape

from .config import get_settings
from .errors import ProviderError, SearchInputError, SummarizeInputError
from .llm import build_model
from .logging_utils import setup_logging
from .models import NewsItem, SearchRequest, SummarizeRequest, SummaryStyle, normalize_lang
from .prompts import build_json_prompt, build_text_prompt
from .providers import NewsProviders
from .search import search_news
from .store import build_store
from .summarizer import summarize_news

app = typer.Typer(help="Search recent news on a topic and build style-aware digests.")


def _load_payload(path: Path) -> dict:
    """Accept either a bare list of items or an object with an ``items`` key."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return {"items": data}
    if isinstance(data, dict):
        return data
    raise typer.BadParameter("The JSON file must hold a list of items or an object with 'items'.")


def _write_output(out_path: Optional[Path], body: Any) -> None:
    text = json.dumps(body, ensure_ascii=False, indent=2)
    if out_path is None:
        print_json(text)
    else:
        out_path.write_text(text, encoding="utf-8")
        rprint(f"[green]Wrote[/green] {out_path}")


@app.command()
def summarize(
    path: Path = typer.Argument(..., help="JSON file with items (list or {items: [...]})."),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="'fast' or 'quality'."),
    style: Optional[str] = typer.Option(None, "--style", "-s", help="Summary style."),
    lang: Optional[str] = typer.Option(None, "--lang", "-l", help="Two-letter language code."),
    max_items: Optional[int] = typer.Option(None, "--max-items", "-n", help="1..25 items."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the JSON body here."),
):
    """Digest a file of items the same way POST /summarize does."""
    settings = get_settings()
    setup_logging(settings.log_level)
    payload = _load_payload(path)
    overrides = {"mode": mode, "summaryStyle": style, "lang": lang, "maxItems": max_items}
    payload.update({key: value for key, value in overrides.items() if value is not None})

    try:
        outcome = summarize_news(
            SummarizeRequest.from_payload(payload),
            settings=settings,
            store=build_store(settings),
            model=build_model(settings),
        )
    except SummarizeInputError as exc:
        rprint(f"[red]{escape(exc.error)}[/red]")
        if exc.hint:
            rprint(escape(exc.hint))
        raise typer.Exit(code=2)
    _write_output(out, outcome.to_response())


@app.command()
def search(
    query: str = typer.Argument(..., help="Topic to search for."),
    lang: str = typer.Option("en", "--lang", "-l"),
    max_items: int = typer.Option(10, "--max-items", "-n"),
    out: Optional[Path] = typer.Option(None, "--out", "-o"),
):
    """Fetch, dedupe and rank recent articles for a topic."""
    settings = get_settings()
    setup_logging(settings.log_level)
    providers = NewsProviders(settings)
    try:
        outcome = search_news(
            SearchRequest.from_payload({"q": query, "lang": lang, "maxItems": max_items}),
            settings=settings,
            providers=providers,
            store=build_store(settings),
        )
    except (SearchInputError, ProviderError) as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2)
    finally:
        providers.close()
    _write_output(out, outcome.to_response())


@app.command()
def prompt(
    path: Path = typer.Argument(..., help="JSON file with items."),
    style: str = typer.Option("balanced", "--style", "-s"),
    lang: str = typer.Option("en", "--lang", "-l"),
    as_json: bool = typer.Option(True, "--json/--text", help="Strict-JSON or plain-text builder."),
):
    """Print the system/user prompt pair a builder produces for the given items."""
    payload = _load_payload(path)
    items: List[NewsItem] = [
        NewsItem.model_validate(entry) for entry in payload.get("items", []) if isinstance(entry, dict)
    ]
    builder = build_json_prompt if as_json else build_text_prompt
    pair = builder(items, normalize_lang(lang), SummaryStyle.coerce(style))
    rprint("[bold]system[/bold]")
    typer.echo(pair.system)
    rprint("[bold]user[/bold]")
    typer.echo(pair.user)


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8000, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run("news_digest.server:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
