from __future__ import annotations

import os
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .logs import get_logger

ENDPOINT_ENV = "FLUENTDB_DYNAMODB_ENDPOINT"

_log = get_logger("runtime")


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(
    *,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
    max_attempts: int = 3,
    environ: Mapping[str, str] = os.environ,
) -> Config:
    """botocore config with adaptive retries.

    Timeouts default to 1s/3s inside Lambda and 5s/30s elsewhere.
    """

    in_lambda = is_lambda_environment(environ)
    if connect_timeout is None:
        connect_timeout = 1.0 if in_lambda else 5.0
    if read_timeout is None:
        read_timeout = 3.0 if in_lambda else 30.0
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _MeteredClient:
    """Proxy that reports the duration and outcome of every client call."""

    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(service=self._service, operation=name, seconds=time.monotonic() - start, ok=ok)
                )

        return wrapped


def log_call_metric(metric: AwsCallMetric) -> None:
    _log.debug(
        "aws call",
        service=metric.service,
        operation=metric.operation,
        seconds=round(metric.seconds, 4),
        ok=metric.ok,
    )


def instrument_client(
    client: Any,
    *,
    service: str,
    on_call: Callable[[AwsCallMetric], None] = log_call_metric,
) -> Any:
    """Wrap ``client`` so each call is reported to ``on_call``; by default it is logged at debug."""

    return _MeteredClient(client, service, on_call)


_clients: dict[tuple[str, str | None, str | None], Any] = {}
_clients_lock = threading.Lock()


def _get_client(
    service: str,
    *,
    region: str | None,
    endpoint_url: str | None,
    config: Config | None,
    session: Any | None,
    metrics: Callable[[AwsCallMetric], None] | None,
) -> Any:
    key = (service, region, endpoint_url)
    with _clients_lock:
        existing = _clients.get(key)
        if existing is not None:
            return existing

        sess = session or boto3.session.Session(region_name=region)
        client = cast(Any, sess).client(
            service,
            region_name=region,
            endpoint_url=endpoint_url,
            config=config or create_boto3_config(),
        )
        if metrics is not None:
            client = instrument_client(client, service=service, on_call=metrics)

        _clients[key] = client
        return client


def get_dynamodb_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
    environ: Mapping[str, str] = os.environ,
) -> Any:
    """Cached DynamoDB client; ``FLUENTDB_DYNAMODB_ENDPOINT`` points it at DynamoDB Local."""

    return _get_client(
        "dynamodb",
        region=region,
        endpoint_url=endpoint_url or environ.get(ENDPOINT_ENV) or None,
        config=config,
        session=session,
        metrics=metrics,
    )


def get_kms_client(
    *,
    region: str | None = None,
    config: Config | None = None,
    session: Any | None = None,
    metrics: Callable[[AwsCallMetric], None] | None = None,
) -> Any:
    return _get_client("kms", region=region, endpoint_url=None, config=config, session=session, metrics=metrics)


def _reset_clients_for_tests() -> None:
    with _clients_lock:
        _clients.clear()
