"""Pytest configuration and shared fixtures."""

import logging
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from packer_updater.config import UpdaterConfig
from packer_updater.logging_config import PACKAGE_LOGGER

Route = Union[Tuple[int, bytes], Callable[[httpx.Request], httpx.Response]]


class FakeReleaseHost:
    """Routes requests to canned responses and records what was asked."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        url = str(request.url).split("?", 1)[0]
        route = self.routes.get(url)

        if route is None:
            return httpx.Response(404)
        if callable(route):
            return route(request)

        status, content = route
        if request.method == "HEAD":
            return httpx.Response(status)
        return httpx.Response(status, content=content)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo handlers installed by the CLI between tests."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def install_dir(tmp_path):
    """Provide the directory holding the installed binary."""
    path = tmp_path / "bin"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path, install_dir):
    """Provide a Linux-targeted configuration with instant retries."""
    return UpdaterConfig(
        base_url="https://releases.example.com/packer",
        index_url="https://api.example.com/v1/releases/packer",
        os_name="linux",
        arch="amd64",
        install_dir=install_dir,
        log_file=tmp_path / "packer-update.log",
        retry_delay_sec=0.0,
        smoke_test_timeout_sec=10.0,
    )


@pytest.fixture
def release_host():
    """Provide an empty fake release host."""
    return FakeReleaseHost()
