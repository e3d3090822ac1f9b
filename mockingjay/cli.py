"""CLI entry point for mockingjay."""

import logging
import sys

import click
import uvicorn

from mockingjay.checker import DEFAULT_TIMEOUT, CompatibilityChecker
from mockingjay.fakeserver import create_fake_server
from mockingjay.loader import ConfigValidationError, load_endpoints
from mockingjay.monkey import wrap
from mockingjay.report import build_report, report_to_json


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose):
    """mockingjay -- check services against endpoint contracts and fake them with a monkey."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to an endpoints file (YAML or JSON).",
)
@click.option(
    "--url",
    required=True,
    help="Base URL of the real service to check.",
)
@click.option(
    "--timeout",
    default=DEFAULT_TIMEOUT,
    show_default=True,
    type=float,
    help="Per-request timeout in seconds.",
)
@click.option(
    "--max-concurrency",
    default=None,
    type=click.IntRange(min=1),
    help="Optional cap on in-flight requests. Defaults to one per endpoint.",
)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    help="Print the report as JSON instead of text.",
)
def check(config_path, url, timeout, max_concurrency, as_json):
    """Check a real service against the endpoints in a config file."""
    try:
        endpoints = load_endpoints(config_path)
    except ConfigValidationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    checker = CompatibilityChecker(timeout=timeout, max_concurrency=max_concurrency)
    report = build_report(checker.check(endpoints, url))

    if as_json:
        click.echo(report_to_json(report))
    else:
        click.echo(report.narrative)

    if not report.compatible:
        sys.exit(1)


@main.command()
@click.option(
    "--config",
    "config_path",
    required=True,
    type=click.Path(exists=True),
    help="Path to an endpoints file (YAML or JSON).",
)
@click.option(
    "--monkey",
    "monkey_path",
    default=None,
    type=click.Path(exists=True),
    help="Optional behavior file; responses misbehave according to it.",
)
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=9090, show_default=True, type=int, help="Port to listen on.")
def serve(config_path, monkey_path, host, port):
    """Serve the endpoints in a config file as a fake service."""
    try:
        endpoints = load_endpoints(config_path)
        app = wrap(create_fake_server(endpoints), monkey_path)
    except ConfigValidationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(f"Serving {len(endpoints)} endpoint(s) on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
