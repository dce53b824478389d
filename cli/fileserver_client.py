"""gRPC client for the file server: listing plus the upload and download pipelines."""

import asyncio
import grpc
import logging
import os
from pathlib import Path
from typing import List, Optional, Union

from common.chunking import iter_chunks
from common.exceptions import (
    MetadataMissingError,
    ProtocolViolationError,
    SizeMismatchError,
    TransferError,
    TransferTooLargeError,
)
from common.paths import base_name
from common.protocol import (
    Chunk,
    DownloadRequest,
    HelloReply,
    HelloRequest,
    ListRequest,
    ListResponse,
    TransferMetadata,
    UploadStatus,
)
from common.rpc import client_channel_options, identity, method_path
from common.transfer import ChunkWriter
from common.types import FileListingEntry, StatusCode, TransferLimits, TransferResult
from cli.config import Config

logger = logging.getLogger(__name__)


class FileServerClient:
    """
    gRPC client for file server operations.
    Handles connection management and RPC calls.
    """
    
    def __init__(
        self,
        target: str,
        limits: TransferLimits = TransferLimits(),
        timeout: Optional[float] = None,
        transfer_timeout: Optional[float] = None,
        download_dir: Union[str, Path] = '.'
    ):
        """
        Initialize client with lazy connection.
        
        Args:
            target: Server address as "host:port"
            limits: Chunk size and maximum transfer size
            timeout: Deadline for unary calls and for waiting on a download header
            transfer_timeout: Deadline for a whole upload or download (None = unbounded)
            download_dir: Directory downloaded files are written into
        """
        self._channel = None
        self._target = target
        self.limits = limits
        self.timeout = timeout
        self.transfer_timeout = transfer_timeout
        self.download_dir = Path(download_dir)

    @classmethod
    def from_config(cls, config: Config) -> 'FileServerClient':
        """Build a client from CLI configuration."""
        return cls(
            target=config.get_target(),
            limits=config.get_limits(),
            timeout=config.get_timeout(),
            transfer_timeout=config.get_transfer_timeout(),
            download_dir=config.get_download_dir(),
        )

    def _ensure_channel(self):
        """Ensure gRPC channel is established."""
        if self._channel is None:
            self._channel = grpc.aio.insecure_channel(
                self._target,
                options=client_channel_options(self.limits.max_transfer_size)
            )
            logger.info(f"Established gRPC channel to {self._target}")
    
    async def close(self):
        """Close gRPC channel."""
        if self._channel:
            await self._channel.close()
            self._channel = None

    async def __aenter__(self) -> 'FileServerClient':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @staticmethod
    def _rpc_error(operation: str, error: grpc.aio.AioRpcError) -> TransferError:
        return TransferError(
            f"{operation} failed: {error.code().name}: {error.details()}",
            code=error.code(),
            details=error.details()
        )
    
    async def say_hello(self, name: str) -> str:
        """
        Greet the server to check connectivity.
        
        Returns:
            Greeting message from the server
            
        Raises:
            TransferError: If the call fails
        """
        self._ensure_channel()
        multi_callable = self._channel.unary_unary(
            method_path('SayHello'),
            request_serializer=identity,
            response_deserializer=identity,
        )
        try:
            response_bytes = await multi_callable(
                HelloRequest(name=name).to_json(),
                timeout=self.timeout
            )
        except grpc.aio.AioRpcError as e:
            logger.error(f"Greeting failed: {e.details()}")
            raise self._rpc_error("SayHello", e) from e
        return HelloReply.from_json(response_bytes).message

    async def list_files(self) -> List[FileListingEntry]:
        """
        List the server's root directory.
        
        Returns:
            Entries as of the response; empty list for an empty directory
            
        Raises:
            TransferError: If the call fails
        """
        self._ensure_channel()
        multi_callable = self._channel.unary_unary(
            method_path('List'),
            request_serializer=identity,
            response_deserializer=identity,
        )
        try:
            response_bytes = await multi_callable(
                ListRequest().to_json(),
                timeout=self.timeout
            )
        except grpc.aio.AioRpcError as e:
            logger.error(f"Listing failed: {e.details()}")
            raise self._rpc_error("List", e) from e
        return ListResponse.from_json(response_bytes).files

    async def upload(self, path: Union[str, Path]) -> TransferResult:
        """
        Upload a local file under its base name.

        Transfer metadata goes out with the call, then one chunk per read,
        then the client half-closes and waits for the single status reply.
        A FAILED status is returned, not raised.
        
        Args:
            path: Local file to send; it is never modified
            
        Returns:
            TransferResult with the server-reported status
            
        Raises:
            FileNotFoundError, IsADirectoryError, OSError: If the source cannot
                be opened or read; raised before any chunk is sent when the open fails
            TransferTooLargeError: If the file exceeds the maximum transfer size
            TransferError: If the stream fails or no status arrives
        """
        source = Path(path)
        self._ensure_channel()
        multi_callable = self._channel.stream_unary(
            method_path('Upload'),
            request_serializer=identity,
            response_deserializer=identity,
        )

        sent_bytes = 0
        chunk_count = 0
        with open(source, 'rb') as f:
            size = os.fstat(f.fileno()).st_size
            if size > self.limits.max_transfer_size:
                raise TransferTooLargeError(
                    f"{source.name} is {size} bytes, limit is {self.limits.max_transfer_size}"
                )
            metadata = TransferMetadata(filename=source.name, size=size)
            logger.info(f"Starting upload of {source.name}, size={size}")

            call = multi_callable(
                metadata=metadata.to_grpc_metadata(),
                timeout=self.transfer_timeout
            )
            try:
                for piece in iter_chunks(f, self.limits.chunk_size):
                    await call.write(Chunk(content=piece).to_json())
                    sent_bytes += len(piece)
                    chunk_count += 1
                await call.done_writing()
                response_bytes = await call
            except grpc.aio.AioRpcError as e:
                logger.error(f"Upload of {source.name} failed after {sent_bytes} bytes: {e.details()}")
                raise self._rpc_error(f"Upload of {source.name}", e) from e
            except asyncio.InvalidStateError as e:
                code = await call.code()
                details = await call.details()
                logger.error(f"Upload of {source.name} terminated by server: {details}")
                raise TransferError(
                    f"Upload of {source.name} failed: {code.name}: {details}",
                    code=code,
                    details=details
                ) from e
            except OSError:
                call.cancel()
                logger.error(f"Reading {source} failed after {sent_bytes} bytes", exc_info=True)
                raise

        status = UploadStatus.from_json(response_bytes)
        result = TransferResult(
            filename=source.name,
            declared_size=size,
            received_bytes=sent_bytes,
            chunk_count=chunk_count,
            status=status.code,
            timestamp=metadata.timestamp
        )
        if status.code is StatusCode.OK:
            logger.info(f"Uploaded {source.name}: {sent_bytes} bytes in {chunk_count} chunks")
        else:
            logger.warning(f"Server reported failed upload of {source.name}")
        return result

    async def download(
        self,
        name: str,
        dest_dir: Optional[Union[str, Path]] = None
    ) -> TransferResult:
        """
        Download a file from the server root.

        Waits for the response header to learn filename and size, then
        writes chunks into dest_dir under the header's base name.
        
        Args:
            name: Remote filename
            dest_dir: Target directory (defaults to the configured download dir)
            
        Returns:
            TransferResult with status OK
            
        Raises:
            MetadataMissingError: If the header lacks filename or size
            ProtocolViolationError: If a chunk message cannot be decoded
            SizeMismatchError: If the stream ends with a byte count that
                differs from the header
            TransferError: If the call fails
            OSError: If the local file cannot be written
        """
        target_dir = Path(dest_dir) if dest_dir is not None else self.download_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Starting download of {name}")

        self._ensure_channel()
        multi_callable = self._channel.unary_stream(
            method_path('Download'),
            request_serializer=identity,
            response_deserializer=identity,
        )
        call = multi_callable(
            DownloadRequest(name=name).to_json(),
            timeout=self.transfer_timeout
        )

        try:
            metadata = await self._read_header(call, name)
            destination = target_dir / base_name(metadata.filename)
            with ChunkWriter(destination, self.limits.max_transfer_size) as writer:
                writer.begin(metadata)
                async for response_bytes in call:
                    try:
                        chunk = Chunk.from_json(response_bytes)
                    except (ValueError, KeyError, TypeError) as e:
                        raise ProtocolViolationError(
                            f"Malformed chunk in download of {name}: {e}"
                        ) from e
                    writer.write(chunk.content)
                result = writer.finish()
        except grpc.aio.AioRpcError as e:
            logger.error(f"Download of {name} failed: {e.details()}")
            raise self._rpc_error(f"Download of {name}", e) from e
        finally:
            if not call.done():
                call.cancel()

        if not result.ok:
            raise SizeMismatchError(
                f"Received {result.received_bytes} bytes for {result.filename}, "
                f"header declared {result.declared_size}",
                result=result
            )
        logger.info(
            f"Downloaded {result.filename}: {result.received_bytes} bytes "
            f"in {result.chunk_count} chunks"
        )
        return result

    async def _read_header(self, call, name: str) -> TransferMetadata:
        """Block until the download header arrives and decode it."""
        try:
            header = await asyncio.wait_for(call.initial_metadata(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TransferError(
                f"Download of {name} failed: no header within {self.timeout}s",
                code=grpc.StatusCode.DEADLINE_EXCEEDED
            ) from e

        try:
            return TransferMetadata.from_grpc_metadata(header)
        except MetadataMissingError:
            # an empty header on a finished call means the server rejected it
            if call.done():
                code = await call.code()
                if code != grpc.StatusCode.OK:
                    details = await call.details()
                    raise TransferError(
                        f"Download of {name} failed: {code.name}: {details}",
                        code=code,
                        details=details
                    )
            raise
