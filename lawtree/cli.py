"""CLI entry point for the legal-code crawler."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click

from lawtree.config.settings import ENV_VARS, CrawlConfig, load_config
from lawtree.ingestion.base import Chapter, Part, Title
from lawtree.ingestion.errors import CrawlError
from lawtree.ingestion.fetcher import HttpPageFetcher
from lawtree.ingestion.malegislature import MalegislatureExtractor
from lawtree.ingestion.walker import CrawlStats, TreeWalker
from lawtree.normalization.snapshot import SnapshotStore, summarize
from lawtree.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _config_options(func):
    """Flags shared by every command that crawls."""
    options = [
        click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
                     help="YAML file with a 'crawl' mapping"),
        click.option("--base-url", envvar=ENV_VARS["base_url"], help="Crawl root (index of parts)"),
        click.option("--output", "-o", "output_path", envvar=ENV_VARS["output_path"],
                     type=click.Path(dir_okay=False, path_type=Path), help="Snapshot file"),
        click.option("--max-retries", envvar=ENV_VARS["max_retries"], type=click.IntRange(min=1),
                     help="Attempts per unit of work"),
        click.option("--retry-delay", envvar=ENV_VARS["retry_delay"], type=click.FloatRange(min=0),
                     help="Seconds between attempts"),
        click.option("--step-timeout", envvar=ENV_VARS["step_timeout"], type=click.FloatRange(min=0, min_open=True),
                     help="Seconds allowed per page load"),
        click.option("--pace-delay", envvar=ENV_VARS["pace_delay"], type=click.FloatRange(min=0),
                     help="Seconds to pause after each page load and section"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _resolve_config(config_file: Path | None, **overrides) -> CrawlConfig:
    try:
        return load_config(config_file, overrides)
    except (OSError, ValueError) as e:
        raise click.UsageError(f"Invalid configuration: {e}") from e


def _build_walker(config: CrawlConfig) -> tuple[TreeWalker, HttpPageFetcher]:
    limiter = RateLimiter(config.pace_delay)
    fetcher = HttpPageFetcher(rate_limiter=limiter, user_agent=config.user_agent)
    extractor = MalegislatureExtractor(config.base_url, config.expand_url_template)
    store = SnapshotStore(config.output_path)
    return TreeWalker(fetcher, extractor, store, config, rate_limiter=limiter), fetcher


def _run(ctx: click.Context, config: CrawlConfig, action) -> CrawlStats:
    """Run ``action(walker)``, turning top-level failures into exit code 1."""
    try:
        walker, fetcher = _build_walker(config)
    except Exception as e:
        click.echo(f"Error: could not start fetcher: {e}", err=True)
        ctx.exit(1)

    try:
        with fetcher:
            return action(walker)
    except CrawlError as e:
        logger.debug("Crawl aborted", exc_info=True)
        click.echo(f"Error: crawl aborted: {e}", err=True)
        ctx.exit(1)
    except Exception as e:
        if ctx.obj.get("verbose"):
            logger.exception("Crawl aborted")
        click.echo(f"Error: crawl aborted: {e.__class__.__name__}: {e}", err=True)
        ctx.exit(1)


def _echo_stats(stats: CrawlStats, output: Path) -> None:
    click.echo(f"\n{'='*60}")
    click.echo(
        f"Done: {stats.parts} parts processed ({stats.parts_failed} failed), "
        f"{stats.titles} titles ({stats.titles_dropped} dropped)"
    )
    click.echo(
        f"  Chapters: {stats.chapters_processed} processed, {stats.chapters_skipped} skipped"
    )
    click.echo(
        f"  Sections: {stats.sections_fetched} processed, {stats.sections_skipped} skipped, "
        f"{stats.sections_failed} failed"
    )
    click.echo(f"  Snapshot: {output}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool):
    """Incremental legal-code crawler."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@_config_options
@click.option("--part", "parts", multiple=True, help="Only crawl these part ids (repeatable)")
@click.option("--structure-only", is_flag=True, help="Record parts, titles and chapters without sections")
@click.pass_context
def crawl(ctx: click.Context, config_file, parts, structure_only, **overrides):
    """Crawl the whole code, resuming from the snapshot."""
    config = _resolve_config(config_file, **overrides)
    click.echo(f"Crawling {config.base_url} into {config.output_path}")
    stats = _run(ctx, config, lambda w: w.walk(part_filter=parts or None, structure_only=structure_only))
    _echo_stats(stats, config.output_path)


@cli.command()
@click.argument("url")
@click.option("--part", "part_id", required=True, help="Part id the chapter belongs to")
@click.option("--title", "title_id", required=True, help="Title id the chapter belongs to")
@click.option("--chapter", "chapter_id", required=True, help="Chapter id")
@click.option("--part-title", default="", help="Part name, used if the part is new")
@click.option("--title-name", default="", help="Title name, used if the title is new")
@click.option("--chapter-title", default="", help="Chapter name")
@_config_options
@click.pass_context
def chapter(ctx, url, part_id, title_id, chapter_id, part_title, title_name, chapter_title, config_file, **overrides):
    """Crawl the sections of a single chapter URL into the snapshot."""
    config = _resolve_config(config_file, **overrides)
    click.echo(f"Crawling Chapter {chapter_id} from {url}")
    stats = _run(ctx, config, lambda w: w.crawl_chapter(
        Part(part=part_id, part_title=part_title),
        Title(title=title_id, title_name=title_name),
        Chapter(chapter=chapter_id, chapter_title=chapter_title, url=url),
    ))
    _echo_stats(stats, config.output_path)


@cli.command()
@click.option("--output", "-o", "output_path", envvar=ENV_VARS["output_path"],
              type=click.Path(dir_okay=False, path_type=Path), help="Snapshot file")
@click.option("--json", "as_json", is_flag=True, help="Print the counts as JSON")
def stats(output_path: Path | None, as_json: bool):
    """Report what the snapshot holds."""
    path = output_path or load_config().output_path
    if not path.exists():
        click.echo(f"Error: no snapshot at {path}", err=True)
        sys.exit(1)

    counts = summarize(SnapshotStore(path).load())
    if as_json:
        click.echo(json.dumps(counts, indent=2))
        return
    for key, value in counts.items():
        click.echo(f"  {key.replace('_', ' '):<26} {value}")


if __name__ == "__main__":
    cli()
