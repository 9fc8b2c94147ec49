"""
Pytest configuration for http_message_core tests.

This file contains shared fixtures and configuration
for all tests in the project.
"""

import pytest
from typing import Dict, Optional

from http_message_core.http_primitives import ServerRequest


@pytest.fixture
def sample_headers():
    """Sample headers for testing."""
    return {
        "Content-Type": "application/json",
        "Authorization": "Bearer token123",
        "User-Agent": "http_message_core/0.1.0",
        "Accept": "*/*",
    }


@pytest.fixture
def forwarded_headers():
    """A full set of X-Forwarded-* headers as sent by a reverse proxy."""
    return {
        "Host": "localhost",
        "X-Forwarded-Host": "example.com",
        "X-Forwarded-Port": "4433",
        "X-Forwarded-Proto": "https",
    }


@pytest.fixture
def make_server_request():
    """Create a server request for http://localhost:80/foo/bar from a peer address."""
    def _create_request(
        remote_addr: Optional[str],
        headers: Dict[str, str],
    ) -> ServerRequest:
        server_params = {} if remote_addr is None else {"REMOTE_ADDR": remote_addr}
        return ServerRequest.create(
            server_params=server_params,
            uri="http://localhost:80/foo/bar",
            method="GET",
            headers=headers,
        )
    return _create_request


@pytest.fixture
def wsgi_environ():
    """A WSGI environ as a server behind a local reverse proxy would build it."""
    return {
        "REQUEST_METHOD": "POST",
        "SCRIPT_NAME": "",
        "PATH_INFO": "/api/items",
        "QUERY_STRING": "page=2&sort=name",
        "SERVER_NAME": "internal.local",
        "SERVER_PORT": "8080",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "10.0.0.5",
        "CONTENT_TYPE": "application/json",
        "CONTENT_LENGTH": "17",
        "HTTP_HOST": "internal.local:8080",
        "HTTP_COOKIE": "session=abc%20123; theme=dark",
        "HTTP_X_FORWARDED_HOST": "shop.example.com",
        "HTTP_X_FORWARDED_PROTO": "https",
        "wsgi.url_scheme": "http",
        "wsgi.input": None,
    }
