"""Click-based CLI interface for the code indexer."""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from dataclasses import asdict
from pathlib import Path
from typing import Any, TypeVar

import click

from . import __version__
from .config import IndexerConfig, load_config
from .errors import CollectionNotFoundError, handle_exception
from .indexer_logging import setup_logging
from .indexing import IndexingEngine, create_engine
from .watcher import Watcher

T = TypeVar("T")


def _load(ctx: click.Context, **overrides: Any) -> IndexerConfig:
    options = ctx.obj
    # Console logging first, so config loading can report problems
    setup_logging(quiet=options["quiet"], verbose=options["verbose"])
    config = load_config(options["config"], **overrides)
    setup_logging(
        level=config.log_level,
        quiet=options["quiet"],
        verbose=options["verbose"],
        log_file=config.log_file,
        log_format=config.log_format,
    )
    return config


def _run(
    ctx: click.Context,
    operation: Callable[[IndexingEngine, IndexerConfig], Awaitable[T]],
    **overrides: Any,
) -> T:
    """Build an engine, run ``operation`` on it and exit cleanly on errors."""
    verbose = ctx.obj["verbose"]
    try:
        config = _load(ctx, **overrides)

        async def main() -> T:
            engine = create_engine(config)
            try:
                return await operation(engine, config)
            finally:
                await engine.close()

        return asyncio.run(main())
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        sys.exit(130)
    except Exception as e:
        message, exit_code = handle_exception(
            e, use_color=sys.stderr.isatty(), verbose=verbose
        )
        click.echo(message, err=True)
        sys.exit(exit_code)


def _echo(ctx: click.Context, message: str) -> None:
    if not ctx.obj["quiet"]:
        click.echo(message)


def _report_batch(ctx: click.Context, result: Any) -> None:
    _echo(
        ctx,
        f"✅ {len(result.successful)} successful, {len(result.failed)} failed",
    )
    for path in result.failed:
        click.echo(f"❌ {path}: {result.errors.get(path, 'unknown error')}", err=True)
    if result.failed:
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option(
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Configuration file path",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool, config_file: Path | None) -> None:
    """Code Indexer - semantic search over a source tree."""
    if quiet and verbose:
        click.echo("Error: --quiet and --verbose are mutually exclusive", err=True)
        sys.exit(1)
    ctx.obj = {"verbose": verbose, "quiet": quiet, "config": config_file}


@cli.command()
@click.argument(
    "paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path)
)
@click.pass_context
def index(ctx: click.Context, paths: tuple[Path, ...]) -> None:
    """Index files; directories are expanded to every non-excluded file."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> Any:
        files: list[str] = []
        for path in paths:
            if path.is_dir():
                files.extend(await engine.get_all_files(path))
            else:
                files.append(str(path))
        if not files:
            _echo(ctx, "No files to index")
        return await engine.index_files(files)

    _report_batch(ctx, _run(ctx, operation))


@cli.command()
@click.argument("query")
@click.option("--limit", "-l", type=click.IntRange(min=1), default=5, show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, limit: int, as_json: bool) -> None:
    """Semantic search over fresh index entries."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> Any:
        return await engine.search(query, limit=limit)

    results = _run(ctx, operation)

    if as_json:
        click.echo(json.dumps([asdict(result) for result in results], indent=2))
        return
    if not results:
        _echo(ctx, "No results found")
        return
    for rank, result in enumerate(results, 1):
        click.echo(f"{rank}. {result.file_path} (score {result.score:.3f})")


@cli.command()
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.pass_context
def reindex(ctx: click.Context, directory: Path) -> None:
    """Clear incremental state and index a whole directory again."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> Any:
        return await engine.reindex_all(directory)

    _report_batch(ctx, _run(ctx, operation, base_directory=directory.resolve()))


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def delete(ctx: click.Context, path: Path) -> None:
    """Remove a file from the index."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> None:
        await engine.delete_file_from_index(path)

    _run(ctx, operation)
    _echo(ctx, f"🗑️ Removed {path} from the index")


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show index statistics, freshness and collection details."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> dict[str, Any]:
        try:
            collection = await asyncio.to_thread(
                engine.vector_store.get_collection_info, engine.collection_name
            )
        except CollectionNotFoundError:
            collection = None
        return {
            "collection_name": engine.collection_name,
            "collection": collection,
            "stats": engine.get_stats(),
            "indexing": asdict(engine.get_indexing_status()),
            "freshness": asdict(engine.get_temporal_stats()),
        }

    report = _run(ctx, operation)

    click.echo(f"Collection: {report['collection_name']}")
    if report["collection"] is None:
        click.echo("  not created yet")
    else:
        click.echo(f"  points: {report['collection']['points_count']}")
        click.echo(f"  vector size: {report['collection']['vector_size']}")
    for section in ("stats", "indexing", "freshness"):
        click.echo(f"{section.title()}:")
        for key, value in report[section].items():
            click.echo(f"  {key}: {value}")


@cli.command()
@click.argument(
    "directory", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--initial/--no-initial",
    default=True,
    show_default=True,
    help="Index changed files before watching",
)
@click.pass_context
def watch(ctx: click.Context, directory: Path, initial: bool) -> None:
    """Watch a directory and keep its index up to date."""

    async def operation(engine: IndexingEngine, config: IndexerConfig) -> None:
        if initial:
            result = await engine.index_files(await engine.get_all_files(directory))
            _echo(
                ctx,
                f"✅ Initial indexing: {len(result.successful)} successful, "
                f"{len(result.failed)} failed",
            )

        watcher = Watcher(directory, engine, debounce_seconds=config.debounce_seconds)
        await watcher.start()
        _echo(ctx, f"👀 Watching {directory} (Ctrl+C to stop)")
        try:
            while watcher.is_watching:
                await asyncio.sleep(1)
        finally:
            await watcher.stop()

    _run(ctx, operation, base_directory=directory.resolve())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
