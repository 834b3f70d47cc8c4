"""CLI commands for the request engine."""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path

import click
import structlog

from src.features.client import HttpClient
from src.features.config import ClientConfig, ConfigValidationError, load_client_config
from src.features.observability import configure_logging
from src.features.request import Failure, Outcome, RequestOptions
from src.features.request.metrics import RequestMetrics
from src.settings import get_settings


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class GetOptions:
    """Options for the get command."""

    url: str
    config_path: Path | None = None
    headers: list[str] = field(default_factory=list)
    follow: int | None = None
    retries: int | None = None
    timeout_ms: float | None = None
    idle_timeout_ms: float | None = None
    dns_ttl: float | None = None
    output: Path | None = None
    decompress: bool = True
    auto_error: bool = False
    include_body: bool = False
    verbose: bool = False
    json_logs: bool = False


def parse_header(raw: str) -> tuple[str, str]:
    """Parse a "Name: value" header option.

    Args:
        raw: Header as given on the command line.

    Returns:
        Tuple of (name, value).

    Raises:
        click.BadParameter: If the header has no colon.
    """
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"Expected 'Name: value', got '{raw}'")
    return name.strip(), value.strip()


def _load_config(options: GetOptions) -> ClientConfig:
    """Load the base configuration and apply command-line overrides."""
    if options.config_path is not None:
        try:
            config = load_client_config(options.config_path)
        except ConfigValidationError as e:
            click.echo("Configuration validation failed:", err=True)
            for error in e.errors:
                click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
            sys.exit(1)
    else:
        config = ClientConfig.from_settings(get_settings())

    changes: dict[str, object] = {
        "auto_decompress": options.decompress,
        "auto_error": options.auto_error or config.auto_error,
    }
    if options.follow is not None:
        changes["follow"] = options.follow
    if options.retries is not None:
        changes["retries"] = options.retries
    if options.timeout_ms is not None:
        changes["timeout_ms"] = options.timeout_ms
    if options.idle_timeout_ms is not None:
        changes["idle_timeout_ms"] = options.idle_timeout_ms
    if options.dns_ttl is not None:
        changes["dns_ttl_seconds"] = options.dns_ttl
    return config.updated(**changes)


def render_outcome(outcome: Outcome, include_body: bool = False) -> dict[str, object]:
    """Convert an outcome into the JSON document printed by the CLI.

    Args:
        outcome: Outcome of the request.
        include_body: Include the decoded body text.

    Returns:
        JSON-serializable dictionary.
    """
    if isinstance(outcome, Failure):
        return {"ok": False, "error": outcome.to_dict()}

    document: dict[str, object] = {
        "ok": True,
        "status": outcome.status,
        "reason": outcome.reason,
        "url": outcome.url,
        "headers": outcome.headers,
        "timing": outcome.timing.to_dict(),
        "http_error": outcome.http_error.message if outcome.http_error else None,
    }
    if outcome.body is not None:
        document["body_bytes"] = len(outcome.body)
        if include_body:
            document["body"] = outcome.text
    if outcome.sink is not None:
        document["download"] = str(outcome.sink)
    return document


async def _perform(options: GetOptions, config: ClientConfig) -> Outcome:
    client = HttpClient(config=config)
    try:
        headers = dict(parse_header(raw) for raw in options.headers)
        return await client.request(
            options.url,
            RequestOptions(
                method="GET",
                headers=headers,
                download=options.output,
            ),
        )
    finally:
        await client.aclose()


def _execute_get(options: GetOptions) -> None:
    settings = get_settings()
    log_level = logging.DEBUG if options.verbose else getattr(
        logging, settings.log_level.upper(), logging.INFO
    )
    configure_logging(
        level=log_level,
        json_format=options.json_logs or settings.log_json,
    )
    log = logger.bind(component=COMPONENT_CLI, command="get")

    config = _load_config(options)
    outcome = asyncio.run(_perform(options, config))

    log.info(
        "cli_request_complete",
        ok=outcome.ok,
        metrics=RequestMetrics.get_instance().to_dict(),
    )
    click.echo(json.dumps(render_outcome(outcome, options.include_body), indent=2))

    if not outcome.ok:
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
def cli() -> None:
    """Resilient HTTP request engine CLI."""


@cli.command()
@click.argument("url")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to a client configuration YAML file.",
)
@click.option(
    "--header",
    "-H",
    "headers",
    multiple=True,
    help="Extra request header, 'Name: value' (repeatable).",
)
@click.option("--follow", type=int, help="Maximum redirects to follow.")
@click.option("--retries", type=int, help="Maximum retries on errors and 5xx.")
@click.option("--timeout", "timeout_ms", type=float, help="First-byte timeout (ms).")
@click.option("--idle-timeout", "idle_timeout_ms", type=float, help="Idle timeout (ms).")
@click.option("--dns-ttl", type=float, help="Address cache TTL in seconds.")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Stream the response body to this file.",
)
@click.option(
    "--decompress/--no-decompress",
    default=True,
    help="Decompress gzip/deflate/br bodies (default: true).",
)
@click.option(
    "--auto-error",
    is_flag=True,
    help="Report statuses outside the success pattern as HTTP errors.",
)
@click.option("--body", "include_body", is_flag=True, help="Print the body text.")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--json-logs/--no-json-logs",
    default=False,
    help="Use JSON format for logs (default: false).",
)
def get(  # noqa: PLR0913
    url: str,
    config_path: Path | None,
    headers: tuple[str, ...],
    follow: int | None,
    retries: int | None,
    timeout_ms: float | None,
    idle_timeout_ms: float | None,
    dns_ttl: float | None,
    output: Path | None,
    decompress: bool,
    auto_error: bool,
    include_body: bool,
    verbose: bool,
    json_logs: bool,
) -> None:
    """Perform a GET request and print status, headers and timing as JSON."""
    options = GetOptions(
        url=url,
        config_path=config_path,
        headers=list(headers),
        follow=follow,
        retries=retries,
        timeout_ms=timeout_ms,
        idle_timeout_ms=idle_timeout_ms,
        dns_ttl=dns_ttl,
        output=output,
        decompress=decompress,
        auto_error=auto_error,
        include_body=include_body,
        verbose=verbose,
        json_logs=json_logs,
    )
    _execute_get(options)


@cli.command("check-config")
@click.argument("config_path", type=click.Path(exists=True, path_type=Path))
def check_config(config_path: Path) -> None:
    """Validate a client configuration file."""
    configure_logging(level=logging.WARNING, json_format=False)
    try:
        config = load_client_config(config_path)
    except ConfigValidationError as e:
        click.echo("Configuration validation failed:", err=True)
        for error in e.errors:
            click.echo(f"  - {error['loc']}: {error['msg']}", err=True)
        sys.exit(1)
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2, sort_keys=True))


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
