"""End-to-end tests: client and server talking over a real gRPC channel."""

import asyncio

import grpc
import pytest
import pytest_asyncio
from grpc import aio

from cli.fileserver_client import FileServerClient
from common.constants import MAX_CHUNK_SIZE_BYTES
from common.exceptions import (
    MetadataMissingError,
    ProtocolViolationError,
    SizeMismatchError,
    TransferError,
    TransferTooLargeError,
)
from common.protocol import Chunk, DownloadRequest, TransferMetadata, UploadStatus
from common.rpc import identity, method_path
from common.types import StatusCode, TransferLimits
from fileserver.config import ServerConfig
from fileserver.grpc_server import FileServiceServicer, add_file_service, create_server
from fileserver.storage import resolve_in_root


async def raw_upload_messages(target: str, pairs, messages) -> UploadStatus:
    """Drive the Upload RPC directly with arbitrary metadata and encoded messages."""
    async with aio.insecure_channel(target) as channel:
        call = channel.stream_unary(
            method_path('Upload'),
            request_serializer=identity,
            response_deserializer=identity,
        )(metadata=pairs, timeout=5)
        try:
            for message in messages:
                await call.write(message)
            await call.done_writing()
        except (asyncio.InvalidStateError, grpc.aio.AioRpcError):
            # the server already ended the call; awaiting it raises its status
            pass
        return UploadStatus.from_json(await call)


async def raw_upload(target: str, pairs, chunks) -> UploadStatus:
    """Drive the Upload RPC directly with arbitrary metadata and chunk contents."""
    return await raw_upload_messages(
        target, pairs, [Chunk(content=content).to_json() for content in chunks]
    )


class TestHelloAndList:
    """Test the unary calls."""

    @pytest.mark.asyncio
    async def test_say_hello(self, client):
        assert await client.say_hello('world') == 'Hello world'

    @pytest.mark.asyncio
    async def test_list_empty_directory(self, client):
        assert await client.list_files() == []

    @pytest.mark.asyncio
    async def test_list_reports_names_sizes_and_dirs(self, client, server_root):
        (server_root / 'a.txt').write_bytes(b'abc')
        (server_root / 'nested').mkdir()

        entries = await client.list_files()

        by_name = {e.name: e for e in entries}
        assert by_name['a.txt'].size == 3
        assert by_name['a.txt'].is_dir is False
        assert by_name['nested'].is_dir is True

    @pytest.mark.asyncio
    async def test_unreachable_server(self, small_limits):
        client = FileServerClient('127.0.0.1:1', limits=small_limits, timeout=1)
        try:
            with pytest.raises(TransferError):
                await client.list_files()
        finally:
            await client.close()


class TestUpload:
    """Test the client-to-server pipeline."""

    @pytest.mark.asyncio
    async def test_upload_zero_byte_file(self, client, tmp_path, server_root):
        source = tmp_path / 'empty.txt'
        source.write_bytes(b'')

        result = await client.upload(source)

        assert result.status is StatusCode.OK
        assert result.chunk_count == 0
        assert (server_root / 'empty.txt').exists()
        assert (server_root / 'empty.txt').stat().st_size == 0

    @pytest.mark.asyncio
    async def test_upload_multi_chunk_file(self, client, tmp_path, server_root):
        data = bytes(range(256)) * 3
        source = tmp_path / 'data.bin'
        source.write_bytes(data)

        result = await client.upload(source)

        assert result.ok
        assert result.chunk_count == len(data) // 16
        assert (server_root / 'data.bin').read_bytes() == data
        assert source.read_bytes() == data

    @pytest.mark.asyncio
    async def test_upload_overwrites_existing_file(self, client, tmp_path, server_root):
        (server_root / 'notes.txt').write_bytes(b'old content that is longer')
        source = tmp_path / 'notes.txt'
        source.write_bytes(b'new')

        result = await client.upload(source)

        assert result.ok
        assert (server_root / 'notes.txt').read_bytes() == b'new'

    @pytest.mark.asyncio
    async def test_upload_missing_source_sends_nothing(self, client, tmp_path, server_root):
        with pytest.raises(FileNotFoundError):
            await client.upload(tmp_path / 'missing.txt')

        assert list(server_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_upload_over_limit_rejected_locally(self, file_server, tmp_path):
        source = tmp_path / 'big.bin'
        source.write_bytes(b'x' * 100)
        client = FileServerClient(
            file_server,
            limits=TransferLimits(chunk_size=16, max_transfer_size=50),
            timeout=5
        )
        try:
            with pytest.raises(TransferTooLargeError):
                await client.upload(source)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_declared_size_mismatch_reports_failed(self, file_server, server_root):
        metadata = TransferMetadata(filename='short.bin', size=10)

        status = await raw_upload(file_server, metadata.to_grpc_metadata(), [b'12345'])

        assert status.code is StatusCode.FAILED
        assert (server_root / 'short.bin').read_bytes() == b'12345'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('attempt', range(5))
    async def test_missing_metadata_is_data_loss(self, file_server, server_root, attempt):
        with pytest.raises(grpc.aio.AioRpcError) as exc_info:
            await raw_upload(file_server, (), [b'12345'] * 8)

        assert exc_info.value.code() == grpc.StatusCode.DATA_LOSS
        assert list(server_root.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('attempt', range(5))
    async def test_declared_size_over_server_limit(self, file_server, server_root, attempt):
        metadata = TransferMetadata(filename='huge.bin', size=10 * 1024 * 1024)

        with pytest.raises(grpc.aio.AioRpcError) as exc_info:
            await raw_upload(file_server, metadata.to_grpc_metadata(), [b'1'] * 8)

        assert exc_info.value.code() == grpc.StatusCode.RESOURCE_EXHAUSTED
        assert list(server_root.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('attempt', range(3))
    async def test_client_sees_server_limit(self, file_server, server_root, tmp_path, attempt):
        source = tmp_path / 'big.bin'
        source.write_bytes(b'x' * (2 * 1024 * 1024))
        client = FileServerClient(
            file_server,
            limits=TransferLimits(chunk_size=64 * 1024, max_transfer_size=8 * 1024 * 1024),
            timeout=5
        )
        try:
            with pytest.raises(TransferError) as exc_info:
                await client.upload(source)
        finally:
            await client.close()

        assert exc_info.value.code == grpc.StatusCode.RESOURCE_EXHAUSTED
        assert 'exceeds limit' in exc_info.value.details
        assert list(server_root.iterdir()) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('message', [b'[]', b'"x"', b'42', b'not json', b'{}'])
    async def test_malformed_chunk_is_data_loss(self, file_server, message):
        metadata = TransferMetadata(filename='bad.bin', size=3)

        with pytest.raises(grpc.aio.AioRpcError) as exc_info:
            await raw_upload_messages(
                file_server,
                metadata.to_grpc_metadata(),
                [message, Chunk(content=b'abc').to_json()]
            )

        assert exc_info.value.code() == grpc.StatusCode.DATA_LOSS
        assert 'Malformed chunk' in exc_info.value.details()

    @pytest.mark.asyncio
    async def test_upload_directory_source_sends_nothing(self, client, tmp_path, server_root):
        (tmp_path / 'folder').mkdir()

        with pytest.raises(IsADirectoryError):
            await client.upload(tmp_path / 'folder')

        assert list(server_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_traversal_name_stays_in_root(self, file_server, server_root, tmp_path):
        metadata = TransferMetadata(filename='../a.txt', size=3)

        status = await raw_upload(file_server, metadata.to_grpc_metadata(), [b'abc'])

        assert status.code is StatusCode.OK
        assert (server_root / 'a.txt').read_bytes() == b'abc'
        assert not (tmp_path / 'a.txt').exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize('attempt', range(5))
    async def test_dot_dot_name_rejected(self, file_server, tmp_path, attempt):
        metadata = TransferMetadata(filename='..', size=3)

        with pytest.raises(grpc.aio.AioRpcError) as exc_info:
            await raw_upload(file_server, metadata.to_grpc_metadata(), [b'abc'] * 8)

        assert exc_info.value.code() == grpc.StatusCode.INVALID_ARGUMENT


class TestDownload:
    """Test the server-to-client pipeline."""

    @pytest.mark.asyncio
    async def test_download_multi_chunk_file(self, client, server_root, download_dir):
        data = b'0123456789' * 10
        (server_root / 'digits.txt').write_bytes(data)

        result = await client.download('digits.txt')

        assert result.ok
        assert result.declared_size == len(data)
        assert result.chunk_count == 7
        assert (download_dir / 'digits.txt').read_bytes() == data

    @pytest.mark.asyncio
    async def test_download_zero_byte_file(self, client, server_root, download_dir):
        (server_root / 'empty.txt').write_bytes(b'')

        result = await client.download('empty.txt')

        assert result.ok
        assert result.chunk_count == 0
        assert (download_dir / 'empty.txt').read_bytes() == b''

    @pytest.mark.asyncio
    async def test_download_truncates_stale_local_file(self, client, server_root, download_dir):
        (server_root / 'v.txt').write_bytes(b'v2')
        (download_dir / 'v.txt').write_bytes(b'version one, longer')

        await client.download('v.txt')

        assert (download_dir / 'v.txt').read_bytes() == b'v2'

    @pytest.mark.asyncio
    async def test_download_into_explicit_directory(self, client, server_root, tmp_path):
        (server_root / 'a.txt').write_bytes(b'abc')
        target = tmp_path / 'elsewhere' / 'deeper'

        await client.download('a.txt', target)

        assert (target / 'a.txt').read_bytes() == b'abc'

    @pytest.mark.asyncio
    async def test_download_missing_file(self, client, download_dir):
        with pytest.raises(TransferError) as exc_info:
            await client.download('missing.txt')

        assert exc_info.value.code == grpc.StatusCode.NOT_FOUND
        assert not (download_dir / 'missing.txt').exists()

    @pytest.mark.asyncio
    async def test_download_directory_rejected(self, client, server_root):
        (server_root / 'nested').mkdir()

        with pytest.raises(TransferError) as exc_info:
            await client.download('nested')

        assert exc_info.value.code == grpc.StatusCode.FAILED_PRECONDITION

    @pytest.mark.asyncio
    async def test_traversal_name_cannot_reach_outside_root(self, client, tmp_path, server_root, download_dir):
        (tmp_path / 'secret.txt').write_bytes(b'outside')

        with pytest.raises(TransferError) as exc_info:
            await client.download('../secret.txt')

        assert exc_info.value.code == grpc.StatusCode.NOT_FOUND

    @pytest.mark.asyncio
    async def test_traversal_name_resolves_to_root_file(self, client, server_root, download_dir):
        (server_root / 'a.txt').write_bytes(b'inside')

        result = await client.download('../a.txt')

        assert result.filename == 'a.txt'
        assert (download_dir / 'a.txt').read_bytes() == b'inside'

    @pytest.mark.asyncio
    async def test_invalid_name_rejected(self, client):
        with pytest.raises(TransferError) as exc_info:
            await client.download('..')

        assert exc_info.value.code == grpc.StatusCode.INVALID_ARGUMENT


class HalfStreamServicer(FileServiceServicer):
    """Declares the full size but ends the stream after half the bytes."""

    async def Download(self, request_bytes, context):
        request = DownloadRequest.from_json(request_bytes)
        path = resolve_in_root(self.root, request.name)
        data = path.read_bytes()
        metadata = TransferMetadata(filename=path.name, size=len(data))
        await context.send_initial_metadata(metadata.to_grpc_metadata())
        yield Chunk(content=data[:len(data) // 2]).to_json()


class AbortingServicer(FileServiceServicer):
    """Aborts the stream after the first chunk."""

    async def Download(self, request_bytes, context):
        request = DownloadRequest.from_json(request_bytes)
        path = resolve_in_root(self.root, request.name)
        data = path.read_bytes()
        metadata = TransferMetadata(filename=path.name, size=len(data))
        await context.send_initial_metadata(metadata.to_grpc_metadata())
        yield Chunk(content=data[:4]).to_json()
        await context.abort(grpc.StatusCode.UNAVAILABLE, "connection lost")


class HeaderlessServicer(FileServiceServicer):
    """Streams content without publishing transfer metadata."""

    async def Download(self, request_bytes, context):
        yield Chunk(content=b'orphan').to_json()


class NonObjectChunkServicer(FileServiceServicer):
    """Publishes a valid header, then sends a JSON array as a chunk."""

    async def Download(self, request_bytes, context):
        metadata = TransferMetadata(filename='list.bin', size=2)
        await context.send_initial_metadata(metadata.to_grpc_metadata())
        yield b'[]'


@pytest_asyncio.fixture
async def custom_server(server_root, small_limits):
    """Start a server around a servicer chosen by the test."""
    servers = []

    async def start(servicer_cls):
        server = aio.server()
        add_file_service(server, servicer_cls(server_root, small_limits))
        port = server.add_insecure_port('127.0.0.1:0')
        await server.start()
        servers.append(server)
        return f'127.0.0.1:{port}'

    yield start
    for server in servers:
        await server.stop(None)


class TestBrokenDownloads:
    """The client never reports success for an incomplete download."""

    @pytest.mark.asyncio
    async def test_stream_ending_early_is_size_mismatch(self, custom_server, server_root, download_dir, small_limits):
        (server_root / 'big.txt').write_bytes(b'x' * 64)
        target = await custom_server(HalfStreamServicer)

        async with FileServerClient(target, limits=small_limits, timeout=5, download_dir=download_dir) as client:
            with pytest.raises(SizeMismatchError) as exc_info:
                await client.download('big.txt')

        result = exc_info.value.result
        assert result.status is StatusCode.FAILED
        assert result.declared_size == 64
        assert result.received_bytes == 32
        assert (download_dir / 'big.txt').read_bytes() == b'x' * 32

    @pytest.mark.asyncio
    async def test_stream_aborted_midway_is_transfer_error(self, custom_server, server_root, download_dir, small_limits):
        (server_root / 'big.txt').write_bytes(b'x' * 64)
        target = await custom_server(AbortingServicer)

        async with FileServerClient(target, limits=small_limits, timeout=5, download_dir=download_dir) as client:
            with pytest.raises(TransferError) as exc_info:
                await client.download('big.txt')

        assert exc_info.value.code == grpc.StatusCode.UNAVAILABLE

    @pytest.mark.asyncio
    async def test_missing_header_is_metadata_error(self, custom_server, download_dir, small_limits):
        target = await custom_server(HeaderlessServicer)

        async with FileServerClient(target, limits=small_limits, timeout=5, download_dir=download_dir) as client:
            with pytest.raises(MetadataMissingError):
                await client.download('anything')

        assert list(download_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_non_object_chunk_is_protocol_violation(self, custom_server, download_dir, small_limits):
        target = await custom_server(NonObjectChunkServicer)

        async with FileServerClient(target, limits=small_limits, timeout=5, download_dir=download_dir) as client:
            with pytest.raises(ProtocolViolationError) as exc_info:
                await client.download('list.bin')

        assert 'Malformed chunk' in str(exc_info.value)


class TestDefaultChunkSize:
    """Full-size chunks across the real channel."""

    @pytest.mark.asyncio
    async def test_one_byte_past_chunk_boundary(self, tmp_path, server_root, download_dir):
        config = ServerConfig(root=server_root, host='127.0.0.1', port=0)
        server = create_server(config)
        port = server.add_insecure_port('127.0.0.1:0')
        await server.start()
        try:
            data = b'\xab' * (MAX_CHUNK_SIZE_BYTES + 1)
            source = tmp_path / 'boundary.bin'
            source.write_bytes(data)

            async with FileServerClient(f'127.0.0.1:{port}', timeout=10, download_dir=download_dir) as client:
                uploaded = await client.upload(source)
                downloaded = await client.download('boundary.bin')

            assert uploaded.ok
            assert uploaded.chunk_count == 2
            assert downloaded.ok
            assert downloaded.chunk_count == 2
            assert (download_dir / 'boundary.bin').read_bytes() == data
        finally:
            await server.stop(None)
