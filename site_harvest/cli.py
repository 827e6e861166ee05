#!/usr/bin/env python3
"""
Command line entry point for site_harvest.

Commands:
  crawl     Crawl the site and combine the pages into output files
  write     Combine the already stored pages into output files (no crawling)
  config    Show the resolved configuration

Common options:
  --config PATH       Path to the YAML/JSON config (default: configs/default.yaml)
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Log file (stdout only when omitted)
  --log-format FORMAT Logging format string (%(phase)s: crawl or write)

crawl overrides:
  --url URL           Start URL (a sitemap URL is expanded)
  --match GLOB        Glob of links to follow, repeatable
  --selector SEL      CSS selector or XPath of the content
  --max-pages INT     Upper bound on crawled pages
  --output NAME       Output file name

Also:
  --version, -v       Show the site_harvest version

Example:
  site-harvest --config configs/default.yaml crawl --max-pages 20 --output docs.json
"""
import asyncio
import sys
from pathlib import Path

import click
from pydantic import ValidationError

from site_harvest import __version__
from site_harvest.config import load_config
from site_harvest.core import CrawlSession
from site_harvest.logger import DEFAULT_FORMAT, init_logging

CONTEXT_SETTINGS = dict(help_option_names=["--help", "-h"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _report(path):
    if path is None:
        click.echo('No records to write.')
    else:
        click.echo(f'Output: {path}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='site_harvest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Path to the YAML or JSON configuration file.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Logging level'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Log file (stdout only when omitted)'
)
@click.option(
    '--log-format', 'log_format',
    default=DEFAULT_FORMAT,
    help='Format string for log records; %(phase)s names the crawl or write phase'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file, log_format):
    """site_harvest command group."""
    try:
        init_logging(
            level=log_level,
            log_file=str(log_file) if log_file else None,
            log_format=log_format
        )
    except ValueError as e:
        print_error(f'Invalid log format: {e}')
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError, TypeError) as e:
        print_error(f'Failed to load configuration: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.option('--url', 'url', default=None, help='Start URL; a sitemap URL is expanded')
@click.option('--match', 'match', multiple=True, help='Glob of links to follow (repeatable)')
@click.option('--selector', 'selector', default=None, help='CSS selector or XPath of the content')
@click.option('--max-pages', 'max_pages', type=click.IntRange(min=1), default=None,
              help='Upper bound on crawled pages')
@click.option('--output', '-o', 'output', default=None, help='Output file name')
@click.pass_context
def crawl(ctx, url, match, selector, max_pages, output):
    """Crawl the site, then combine the pages into output files."""
    cfg = ctx.obj['config']
    try:
        cfg = cfg.with_overrides(
            url=url,
            match=list(match) or None,
            selector=selector,
            max_pages_to_crawl=max_pages,
            output_file_name=output,
        )
    except ValidationError as e:
        print_error(f'Invalid option: {e}')

    click.echo(f'Starting crawl at {cfg.url}')
    session = CrawlSession(cfg)
    try:
        path = asyncio.run(session.run())
    except Exception as e:
        print_error(f'Crawl failed: {e}')
    click.echo(f'Pages crawled: {session.pages_crawled}')
    _report(path)


@cli.command('write', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def write(ctx):
    """Combine the stored pages into output files without crawling."""
    session = CrawlSession(ctx.obj['config'])
    try:
        path = session.write()
    except (OSError, ValueError) as e:
        print_error(f'Writing output failed: {e}')
    _report(path)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Show the current configuration as JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2, by_alias=True, exclude={'on_visit_page'}))


if __name__ == "__main__":
    cli()
