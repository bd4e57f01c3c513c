"""Print the events of an SSE endpoint, reconnecting as the retry policy allows."""

import asyncio
import logging
from pathlib import Path

import click
import httpx

from reconnecting_sse.config import (
    SETTINGS,
    build_retry_policy,
    build_settings,
    load_raw_config,
)
from reconnecting_sse.errors import EventSourceError
from reconnecting_sse.streams.consumer import stream_consumer
from reconnecting_sse.streams.parser import MessageEvent


def _build_client(timeout: float | None) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout)


def _parse_headers(ctx, param, values) -> dict[str, str]:
    headers = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME:VALUE, got {value!r}")
        headers[name.strip()] = header_value.strip()
    return headers


def format_event(event: MessageEvent) -> str:
    prefix = f"[{event.id}] " if event.id else ""
    return f"{prefix}{event.event}: {event.data}"


async def _run(url: str, settings: dict, headers: dict, last_event_id: str) -> str:
    async def on_message(event: MessageEvent) -> None:
        click.echo(format_event(event))

    async with _build_client(settings["timeout"]) as client:
        return await stream_consumer(
            url,
            url,
            on_message,
            retry_policy=build_retry_policy(settings["retry"]),
            client=client,
            headers={**settings["headers"], **headers},
            last_event_id=last_event_id,
            max_line_size=settings["max_line_size"],
        )


@click.command()
@click.argument("url")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with retry, client and parser settings.",
)
@click.option(
    "--header",
    "headers",
    multiple=True,
    callback=_parse_headers,
    metavar="NAME:VALUE",
    help="Extra request header; may be repeated.",
)
@click.option("--last-event-id", default="", help="Resume after this event id.")
@click.option(
    "--policy",
    type=click.Choice(["exponential", "constant", "never"]),
    help="Override the configured retry policy.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log connection activity.")
def main(url, config_path, headers, last_event_id, policy, verbose):
    """Stream events from URL until the server stops being retryable."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    try:
        settings = build_settings(load_raw_config(config_path)) if config_path else SETTINGS
        if policy:
            settings = {**settings, "retry": {**settings["retry"], "policy": policy}}
            build_retry_policy(settings["retry"])
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        last_seen = asyncio.run(_run(url, settings, headers, last_event_id))
    except EventSourceError as exc:
        raise click.ClickException(str(exc)) from exc
    if last_seen:
        click.echo(f"Stream closed after event {last_seen}", err=True)
