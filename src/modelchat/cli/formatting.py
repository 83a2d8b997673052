"""Display helpers for chat results and assets."""

from rich.table import Table
from rich.text import Text

from ..assets import Asset
from ..llm.models import ChatResult, Source


def similarity_percent(similarity: float) -> int:
    """Relevance fraction as a rounded percentage: 0.876 -> 88."""
    return round(similarity * 100)


def format_source(source: Source) -> str:
    if source.similarity is None:
        return source.document
    return f"{source.document} (relevance: {similarity_percent(source.similarity)}%)"


def format_stats(result: ChatResult) -> str:
    return (
        f"{result.model} | {result.total_tokens} tokens "
        f"({result.prompt_tokens} input + {result.response_tokens} output)"
    )


def render_result(result: ChatResult) -> Text:
    """Stats line plus any grounding sources, dimmed."""
    text = Text(format_stats(result), style="dim")
    if result.sources:
        text.append("\nSources:", style="bold dim")
        for source in result.sources:
            text.append(f"\n  - {format_source(source)}", style="dim")
    return text


def mime_label(mime_type: str) -> str:
    """Short type label: 'application/pdf' -> 'PDF'."""
    _, _, subtype = mime_type.partition("/")
    return (subtype or mime_type).upper()


def assets_table(assets: list[Asset]) -> Table:
    table = Table(title="Uploaded files")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Uploaded", style="dim")

    for asset in assets:
        uploaded = asset.uploaded_at.strftime("%Y-%m-%d %H:%M") if asset.uploaded_at else ""
        table.add_row(asset.id, asset.original_name, mime_label(asset.mime_type), asset.display_size, uploaded)
    return table
