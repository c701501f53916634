import traceback
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table
from typing_extensions import Annotated

from sitepaths.core import config as app_config
from sitepaths.core.exceptions import SitePathsError
from sitepaths.core.logging_config import setup_logging
from sitepaths.services.page_paths import PagePaths

app = typer.Typer(
    name="sitepaths",
    help="Maintain and query the per-locale page path index.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="raw",
)

console = Console()


# Global state for the Typer context: the PagePaths instance built by the callback.
class GlobalState:
    page_paths: Optional[PagePaths] = None


global_state = GlobalState()


@app.callback()
def main_callback(
    database_url: Annotated[
        Optional[str],
        typer.Option(
            "--database-url",
            "-d",
            help="Database holding the page tree and the path index. Defaults to the configured one.",
            envvar="SITEPATHS_DATABASE_URL",
        ),
    ] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Logging level, e.g. DEBUG.")] = None,
):
    """
    Main CLI callback to set up logging and the path index.
    """
    setup_logging(log_level)
    app_settings = app_config.settings
    if database_url:
        app_settings = app_settings.model_copy(update={"DATABASE_URL": database_url})
    global_state.page_paths = PagePaths(app_settings=app_settings)


def _page_paths() -> PagePaths:
    if global_state.page_paths is None:
        typer.secho("Error: path index is not initialized.", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return global_state.page_paths


@app.command(name="init-db")
def init_db():
    """
    Creates the page tree and path index tables when they are missing.
    """
    page_paths = _page_paths()
    try:
        page_paths.db_manager.create_db_and_tables()
        changes = page_paths.ensure_schema()
    except Exception as e:
        typer.secho(f"Error during database setup: {e}", fg=typer.colors.RED)
        typer.secho(traceback.format_exc(), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for change in changes:
        typer.echo(f"  {change}")
    typer.secho("Database setup complete.", fg=typer.colors.GREEN)


@app.command(name="rebuild")
def rebuild(
    node: Annotated[
        Optional[int], typer.Option("--node", "-n", help="Rebuild only this page and its descendants.")
    ] = None,
):
    """
    Rebuilds the whole path index, or one subtree.
    """
    page_paths = _page_paths()
    try:
        count = page_paths.rebuild(node)
    except SitePathsError as e:
        typer.secho(f"Rebuild failed: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    result = page_paths.last_result
    scope = "whole tree" if node is None else f"page {node}"
    typer.secho(f"Rebuilt {count} paths ({scope}) in {result.duration:.2f}s.", fg=typer.colors.GREEN)
    if result.failures:
        typer.secho(f"{len(result.failures)} page(s) could not be indexed:", fg=typer.colors.YELLOW)
        for page_id, error in result.failures:
            typer.echo(f"  {page_id}: {error}")


@app.command(name="path")
def get_path(
    node_id: Annotated[int, typer.Argument(help="Page id.")],
    locale: Annotated[int, typer.Option("--locale", "-l", help="Locale id, 0 for the default locale.")] = 0,
):
    """
    Prints the path of a page.
    """
    path = _page_paths().get_path(node_id, locale)
    if path is None:
        typer.secho(f"Page {node_id} is not indexed.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(path)


@app.command(name="paths")
def get_paths(node_id: Annotated[int, typer.Argument(help="Page id.")]):
    """
    Prints every locale path of a page.
    """
    paths = _page_paths().get_paths(node_id)
    if not paths:
        typer.secho(f"Page {node_id} is not indexed.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    table = Table(title=f"Paths of page {node_id}")
    table.add_column("Locale", justify="right")
    table.add_column("Path")
    for locale_id, path in sorted(paths.items()):
        table.add_row(str(locale_id), path)
    console.print(table)


@app.command(name="lookup")
def lookup(paths: Annotated[List[str], typer.Argument(help="Candidate paths, tried in order.")]):
    """
    Finds the page and locale owning a path.
    """
    page_id, locale_id = _page_paths().get_page_and_locale_id(paths)
    if not page_id:
        typer.secho("No page found.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(f"page={page_id} locale={locale_id}")


@app.command(name="info")
def info(path: Annotated[str, typer.Argument(help="Path to look up.")]):
    """
    Prints the routing info stored for a path.
    """
    page_info = _page_paths().get_page_info(path)
    if page_info is None:
        typer.secho("No page found.", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.echo(
        f"page={page_info.page_id} locale={page_info.locale_id} path={page_info.path} "
        f"parent={page_info.parent_id} template={page_info.template_id} status={page_info.status}"
    )


@app.command(name="root-segments")
def root_segments(
    force_rebuild: Annotated[bool, typer.Option("--rebuild", help="Rebuild the cache first.")] = False,
):
    """
    Prints the cached first-level path segments.
    """
    segments = _page_paths().get_root_segments(force_rebuild=force_rebuild)
    table = Table(title="Root segments")
    table.add_column("Key")
    table.add_column("Segment")
    for key, segment in sorted(segments.items()):
        table.add_row(key, segment)
    console.print(table)


@app.command(name="is-root-segment")
def is_root_segment(segment: Annotated[str, typer.Argument(help="Segment or path.")]):
    """
    Prints the page owning a first-level segment, 0 when it is an ordinary segment.
    """
    typer.echo(str(_page_paths().is_root_segment(segment)))


@app.command(name="stats")
def stats():
    """
    Prints index size and the estimated time of a full rebuild.
    """
    index_stats = _page_paths().stats()
    table = Table(title="Path index")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Rows", str(index_stats.row_count))
    table.add_row("Pages", str(index_stats.node_count))
    estimate = index_stats.estimated_rebuild_seconds
    table.add_row("Estimated rebuild", "unknown" if estimate is None else f"{estimate:.2f}s")
    console.print(table)


if __name__ == "__main__":
    app()
