from collections.abc import Mapping
from pathlib import Path

import yaml

from reconnecting_sse.retry import Constant, ExponentialBackoff, Never, RetryPolicy
from reconnecting_sse.streams.parser import DEFAULT_MAX_LINE_SIZE

_CONFIG_PATH = Path(__file__).parent / "config.yaml"


def load_raw_config(config_path: Path = _CONFIG_PATH) -> dict:
    with config_path.open() as config_file:
        return yaml.safe_load(config_file) or {}


def _seconds(value) -> float | None:
    return None if value is None else float(value)


def _retries(value) -> int | None:
    return None if value is None else int(value)


def build_retry_policy(raw_retry: Mapping) -> RetryPolicy:
    name = raw_retry.get("policy", "exponential")
    if name == "exponential":
        return ExponentialBackoff(
            start=float(raw_retry.get("start", 0.3)),
            factor=float(raw_retry.get("factor", 2.0)),
            max_delay=float(raw_retry.get("max-delay", 5.0)),
            max_retries=_retries(raw_retry.get("max-retries")),
        )
    if name == "constant":
        return Constant(
            delay=float(raw_retry.get("delay", 1.0)),
            max_retries=_retries(raw_retry.get("max-retries")),
        )
    if name == "never":
        return Never()
    raise ValueError(f"Unknown retry policy: {name!r}")


def build_settings(raw_config: Mapping) -> dict:
    raw_retry = dict(raw_config.get("retry") or {})
    raw_client = raw_config.get("client") or {}
    raw_parser = raw_config.get("parser") or {}
    # Fail on a bad retry section now rather than on the first reconnect.
    build_retry_policy(raw_retry)
    return {
        "retry": raw_retry,
        "timeout": _seconds(raw_client.get("timeout")),
        "headers": dict(raw_client.get("headers") or {}),
        "max_line_size": int(raw_parser.get("max-line-size", DEFAULT_MAX_LINE_SIZE)),
    }


SETTINGS = build_settings(load_raw_config())
