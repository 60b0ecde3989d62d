"""
Command line entry point: list and summarize LMS collections.
"""

import asyncio
import sys
from typing import Any

import click

from lms_sync.core.api_client import WordPressClient
from lms_sync.core.config import ApiSettings, ConfigManager, ConfigValidationError
from lms_sync.core.logging import setup_logging
from lms_sync.resources.factory import RESOURCES, build_store
from lms_sync.sync.store import ResourceStore


RESOURCE_CHOICE = click.Choice(sorted(RESOURCES))


def parse_filters(values: tuple[str, ...]) -> dict[str, str]:
    """Turn ``key=value`` pairs into a filter map."""
    filters = {}
    for value in values:
        key, sep, raw = value.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got {value!r}", param_hint="--filter")
        filters[key.strip()] = raw.strip()
    return filters


def _title(item: dict[str, Any]) -> str:
    return str(item.get("title") or item.get("name") or "")


async def _load(settings: ApiSettings, resource: str, filters: dict[str, Any], pages: int, transport: Any) -> ResourceStore:
    """Fetch page 1 with ``filters`` and append until ``pages`` pages are loaded."""
    async with WordPressClient(settings, transport=transport) as client:
        store = build_store(resource, client, auto_fetch=False)
        store.filters = {**store.filters, **filters}
        try:
            await store.fetch_items(reset=True)
            while store.error is None and store.pagination.current_page < pages:
                if not await store.load_more():
                    break
        finally:
            await store.unmount()
        return store


@click.group()
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="JSON configuration file")
@click.option("--api-url", help="REST API root, e.g. https://example.com/wp-json")
@click.option("--nonce", help="WordPress REST nonce")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_file: str | None, api_url: str | None, nonce: str | None, verbose: bool):
    """LMS admin collection sync client."""
    ctx.ensure_object(dict)
    overrides: dict[str, Any] = {}
    if api_url:
        overrides["api_url"] = api_url
    if nonce:
        overrides["nonce"] = nonce
    if verbose:
        overrides["log_level"] = "DEBUG"

    try:
        settings = ConfigManager().load_config(config_file, **overrides)
    except ConfigValidationError as e:
        raise click.ClickException(str(e)) from e

    setup_logging(settings)
    ctx.obj["settings"] = settings


@cli.command("list")
@click.argument("resource", type=RESOURCE_CHOICE)
@click.option("--search", default="", help="Full-text search")
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True, help="Load pages 1 through N")
@click.option("--per-page", type=click.IntRange(1, 100), help="Items per page")
@click.option("--filter", "filter_values", multiple=True, help="Extra filter as key=value (repeatable)")
@click.pass_context
def list_items(
    ctx: click.Context,
    resource: str,
    search: str,
    page: int,
    per_page: int | None,
    filter_values: tuple[str, ...],
):
    """List items of RESOURCE."""
    settings: ApiSettings = ctx.obj["settings"]
    if per_page:
        settings = settings.model_copy(update={"default_per_page": per_page})
    filters = {**parse_filters(filter_values), "search": search}

    store = asyncio.run(_load(settings, resource, filters, page, ctx.obj.get("transport")))
    if store.error:
        click.echo(f"Error: {store.error}", err=True)
        sys.exit(1)

    for item in store.items:
        click.echo(f"{item.get('id')}\t{item.get('status', '-')}\t{_title(item)}")

    p = store.pagination
    more = " (more available)" if p.has_more else ""
    click.echo(f"Page {p.current_page}/{p.total_pages}, {len(store.items)} of {p.total} {resource}{more}")


@cli.command()
@click.argument("resource", type=RESOURCE_CHOICE)
@click.option("--pages", type=click.IntRange(min=1), default=1, show_default=True, help="Pages to aggregate")
@click.option("--filter", "filter_values", multiple=True, help="Extra filter as key=value (repeatable)")
@click.pass_context
def stats(ctx: click.Context, resource: str, pages: int, filter_values: tuple[str, ...]):
    """Print aggregate statistics for the loaded RESOURCE items as JSON."""
    settings: ApiSettings = ctx.obj["settings"]
    store = asyncio.run(_load(settings, resource, parse_filters(filter_values), pages, ctx.obj.get("transport")))
    if store.error:
        click.echo(f"Error: {store.error}", err=True)
        sys.exit(1)
    click.echo(store.computed.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
