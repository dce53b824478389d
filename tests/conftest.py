"""Shared pytest fixtures for all tests."""

import pytest
import pytest_asyncio

from cli.config import Config
from cli.fileserver_client import FileServerClient
from common.types import TransferLimits
from fileserver.config import ServerConfig
from fileserver.grpc_server import create_server


@pytest.fixture
def server_root(tmp_path):
    """
    Create the directory served by the test server.

    Returns:
        Path to an empty served directory
    """
    root = tmp_path / 'served'
    root.mkdir()
    return root


@pytest.fixture
def download_dir(tmp_path):
    """Directory the client writes downloads into."""
    path = tmp_path / 'downloads'
    path.mkdir()
    return path


@pytest.fixture
def small_limits():
    """Tiny chunks so multi-chunk transfers stay small."""
    return TransferLimits(chunk_size=16, max_transfer_size=1024 * 1024)


@pytest.fixture
def temp_config(tmp_path):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(tmp_path / '.fileserver' / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest_asyncio.fixture
async def file_server(server_root, small_limits):
    """
    Run an in-process file server on an ephemeral localhost port.

    Yields:
        Target address of the running server
    """
    config = ServerConfig(root=server_root, host='127.0.0.1', port=0, limits=small_limits)
    server = create_server(config)
    port = server.add_insecure_port('127.0.0.1:0')
    await server.start()
    yield f'127.0.0.1:{port}'
    await server.stop(None)


@pytest_asyncio.fixture
async def client(file_server, small_limits, download_dir):
    """Client connected to the in-process server."""
    client = FileServerClient(
        file_server,
        limits=small_limits,
        timeout=5,
        download_dir=download_dir
    )
    yield client
    await client.close()
