"""CLI commands for querying a Sightline leader."""

import json
import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from xml.etree.ElementTree import tostring

import click
import httpx
import structlog
from pydantic import ValidationError

from arbor_api.cache import CacheStore, create_cache_store
from arbor_api.errors import ArborApiError
from arbor_api.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
)
from arbor_api.rest import Filter, RestClient
from arbor_api.settings import ArborSettings
from arbor_api.traffic import create_traffic_api, get_asn_traffic_xml


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class CliContext:
    """State shared by the commands of one invocation."""

    settings: ArborSettings | None = None
    transport: httpx.BaseTransport | None = None
    cache: CacheStore | None = None


def _parse_filters(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> list[Filter]:
    """Parse ``--filter`` values, rejecting malformed ones."""
    try:
        return [Filter.parse(value) for value in values]
    except ValueError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param) from e


def _load_settings(state: CliContext) -> ArborSettings:
    """Load settings from the environment, exit on failure."""
    if state.settings is None:
        try:
            state.settings = ArborSettings()  # type: ignore[call-arg]
        except ValidationError as e:
            click.echo("Configuration is invalid:", err=True)
            for error in e.errors():
                location = ".".join(str(part) for part in error["loc"])
                click.echo(f"  - ARBOR_{location.upper()}: {error['msg']}", err=True)
            sys.exit(1)
    return state.settings


def _cache_for(state: CliContext, settings: ArborSettings) -> CacheStore:
    if state.cache is None:
        state.cache = create_cache_store(settings.cache_path)
    return state.cache


@contextmanager
def _reported_errors(command: str) -> Iterator[None]:
    """Print client and configuration errors to stderr and exit with 1."""
    request_id = uuid.uuid4().hex
    bind_request_context(request_id)
    log = logger.bind(component=COMPONENT_CLI, command=command)
    try:
        yield
    except ArborApiError as e:
        log.warning("command_failed", **e.to_dict())
        for message in e.messages:
            click.echo(f"Error: {message}", err=True)
        sys.exit(1)
    except ValueError as e:
        log.warning("command_failed", error=str(e))
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        clear_request_context()


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
@click.option("--json-logs", is_flag=True, help="Log as JSON lines.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, json_logs: bool) -> None:
    """Query an Arbor Sightline leader.

    Connection settings are read from ARBOR_* environment variables
    (ARBOR_HOSTNAME, ARBOR_REST_TOKEN, ARBOR_WSKEY, ...) or a .env file.
    """
    configure_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=json_logs,
    )
    ctx.ensure_object(CliContext)


@cli.command()
@click.argument("endpoint")
@click.option(
    "--filter",
    "filters",
    multiple=True,
    callback=_parse_filters,
    help="Filter as kind/field.operator.search, e.g. a/family.eq.peer. Repeatable.",
)
@click.option("--per-page", default=50, show_default=True, type=click.IntRange(min=1))
@click.option("--commit", is_flag=True, help="Read committed configuration.")
@click.option("--no-cache", is_flag=True, help="Bypass the response cache.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up after this many seconds waiting for pages.",
)
@click.pass_obj
def find(  # noqa: PLR0913
    state: CliContext,
    endpoint: str,
    filters: list[Filter],
    per_page: int,
    commit: bool,
    no_cache: bool,
    timeout: float | None,
) -> None:
    """Print every record of ENDPOINT (e.g. managed_objects) as JSON."""
    settings = _load_settings(state)
    with _reported_errors("find"):
        client = RestClient.from_settings(settings, _cache_for(state, settings), state.transport)
        with client:
            result = client.fetch_all(
                endpoint,
                filters=filters or None,
                per_page=per_page,
                commit=commit,
                use_cache=False if no_cache else None,
                timeout=timeout,
            )
        for error in result.errors:
            click.echo(f"Warning: page {error.page} skipped: {error.message}", err=True)
        click.echo(json.dumps(result.records, indent=2))


@cli.command()
@click.argument("endpoint")
@click.argument("object_id")
@click.option("--no-cache", is_flag=True, help="Bypass the response cache.")
@click.pass_obj
def get(state: CliContext, endpoint: str, object_id: str, no_cache: bool) -> None:
    """Print one object of ENDPOINT as JSON."""
    settings = _load_settings(state)
    with _reported_errors("get"):
        client = RestClient.from_settings(settings, _cache_for(state, settings), state.transport)
        with client:
            body = client.get_by_id(endpoint, object_id, use_cache=False if no_cache else None)
        click.echo(json.dumps(body, indent=2))


@cli.command("traffic-xml")
@click.option("--asn", required=True, type=click.IntRange(min=0), help="AS number.")
@click.option("--start", default="7 days ago", show_default=True, help="Query start.")
@click.option("--end", default="now", show_default=True, help="Query end.")
@click.pass_obj
def traffic_xml(state: CliContext, asn: int, start: str, end: str) -> None:
    """Print traffic exchanged with an ASN as XML.

    Uses the protocol selected by ARBOR_TRAFFIC_PROTOCOL.
    """
    settings = _load_settings(state)
    with _reported_errors("traffic-xml"):
        api = create_traffic_api(settings, _cache_for(state, settings), state.transport)
        try:
            root = get_asn_traffic_xml(api, asn, start, end)
        finally:
            api.close()
        click.echo(tostring(root, encoding="unicode"))
