import os
import sys
from pathlib import Path
from typing import Any, Callable, Generator, List

import httpx
import pytest

from elastic_dispatch.client import Client
from elastic_dispatch.config import Config
from elastic_dispatch.logging.logger import _ctx

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(scope="session", autouse=True)
def reset_argv() -> Generator[None, None, None]:
    original_argv = sys.argv[:]
    sys.argv = ["elastic_dispatch"]

    yield

    sys.argv = original_argv


@pytest.fixture(scope="session", autouse=True)
def reset_os_env() -> Generator[None, None, None]:
    original_os_env = {k: v for k, v in os.environ.items() if k.startswith("ELASTIC_DISPATCH_")}
    keys = original_os_env.keys()
    for k in keys:
        del os.environ[k]

    yield

    for k in keys:
        os.environ[k] = original_os_env[k]


@pytest.fixture()
def clean_ctx() -> Generator[None, None, None]:
    """Clean up logger context after each test."""
    yield
    _ctx.set(None)


@pytest.fixture()
def test_config(tmp_path: Path) -> Config:
    """Single node, no background health check, run logs under tmp_path."""
    return Config(result_dir=tmp_path, healthcheck=False)


@pytest.fixture()
def make_client(test_config: Config) -> Generator[Callable[..., Client], None, None]:
    """Factory for a Client whose transport is served by ``handler``.

    Keyword arguments other than ``config`` are passed to ``Client``;
    ``config_update`` patches fields of the ``test_config`` fixture.
    """
    clients: List[Client] = []
    transports: List[httpx.Client] = []

    def _make(handler: Handler, config_update: Any = None, config: Any = None, **kwargs: Any) -> Client:
        transport = httpx.Client(transport=httpx.MockTransport(handler))
        transports.append(transport)
        if config is None:
            config = Config(**{**test_config.model_dump(), **(config_update or {})})
        client = Client(config, transport=transport, **kwargs)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()
    for transport in transports:
        transport.close()

