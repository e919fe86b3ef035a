"""Backend test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

import socket
import tempfile
from typing import TYPE_CHECKING, Optional

import pytest

from remote_dispatch.backends._local import LocalBackend
from remote_dispatch.backends._memory import MemoryBackend
from tests.backends.options import make_bucket, s3_options, sftp_options

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_dispatch._operator import Operator
    from tests.backends.sftp_server import SFTPTestServer


def _s3_available() -> bool:
    try:
        import boto3  # noqa: F401
        import moto  # noqa: F401
        import s3fs  # noqa: F401

        return True
    except ImportError:
        return False


def _sftp_available() -> bool:
    try:
        import paramiko  # noqa: F401
        import tenacity  # noqa: F401

        return True
    except ImportError:
        return False


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("", 0))
        return int(s.getsockname()[1])


@pytest.fixture(scope="session")
def moto_server() -> Iterator[Optional[str]]:
    """Start a moto HTTP server for the test session.

    Server mode keeps s3fs talking real HTTP, as it would to S3.
    """
    if not _s3_available():
        yield None
        return
    from moto.moto_server.threaded_moto_server import ThreadedMotoServer

    port = _free_port()
    server = ThreadedMotoServer(port=port, verbose=False)
    server.start()
    yield f"http://127.0.0.1:{port}"
    server.stop()


@pytest.fixture(scope="session")
def sftp_server() -> Iterator[Optional[SFTPTestServer]]:
    """Start an in-process SFTP server for the test session."""
    if not _sftp_available():
        yield None
        return
    from tests.backends.sftp_server import SFTPTestServer

    with tempfile.TemporaryDirectory(prefix="sftp_test_") as tmp, SFTPTestServer(tmp) as server:
        yield server


_s3_param = pytest.param(
    "s3",
    marks=pytest.mark.skipif(not _s3_available(), reason="moto/s3fs not installed"),
)

_sftp_param = pytest.param(
    "sftp",
    marks=pytest.mark.skipif(not _sftp_available(), reason="paramiko/tenacity not installed"),
)


@pytest.fixture(params=["memory", "local", _s3_param, _sftp_param])
def backend(
    request: pytest.FixtureRequest,
    moto_server: Optional[str],
    sftp_server: Optional[SFTPTestServer],
) -> Iterator[Operator]:
    """Parameterized writable backend. Add new backends here."""
    if request.param == "memory":
        yield MemoryBackend()
    elif request.param == "local":
        with tempfile.TemporaryDirectory() as tmp:
            yield LocalBackend(root=tmp)
    elif request.param == "s3":
        from remote_dispatch.backends._s3 import S3Backend

        assert moto_server is not None
        b = S3Backend(make_bucket(moto_server, "conformance"), **s3_options(moto_server))
        yield b
        b.close()
    elif request.param == "sftp":
        from remote_dispatch.backends._sftp import SFTPBackend

        assert sftp_server is not None
        b = SFTPBackend("127.0.0.1", **sftp_options(sftp_server))
        yield b
        b.close()
    else:
        pytest.skip(f"Unknown backend: {request.param}")
