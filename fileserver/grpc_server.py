"""gRPC server implementation for the file server."""

import grpc
from grpc import aio
import logging
from pathlib import Path
from typing import AsyncIterator, Union

from common.chunking import iter_file_chunks
from common.constants import FILE_SERVICE_NAME
from common.exceptions import (
    InvalidFilenameError,
    MetadataMissingError,
    TransferTooLargeError,
)
from common.protocol import (
    Chunk,
    DownloadRequest,
    HelloReply,
    HelloRequest,
    ListResponse,
    TransferMetadata,
    UploadStatus,
)
from common.rpc import identity, message_size_options
from common.transfer import ChunkWriter
from common.types import TransferLimits
from fileserver.config import ServerConfig
from fileserver.storage import get_file_size, list_directory, resolve_in_root

logger = logging.getLogger(__name__)


class FileServiceServicer:
    """
    gRPC service implementation serving one root directory.
    """
    
    def __init__(self, root: Union[str, Path], limits: TransferLimits = TransferLimits()):
        """
        Initialize servicer.
        
        Args:
            root: Directory whose files are listed, uploaded to and downloaded from
            limits: Chunk size and maximum transfer size
        """
        self.root = Path(root).resolve()
        self.limits = limits
    
    async def SayHello(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle SayHello RPC (unary).
        Connectivity smoke test.
        """
        request = HelloRequest.from_json(request_bytes)
        logger.info(f"Received: {request.name}")
        return HelloReply(message=f"Hello {request.name}").to_json()

    async def List(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle List RPC (unary).
        List the entries of the served root.
        
        Args:
            request_bytes: Serialized ListRequest
            context: gRPC context
            
        Returns:
            Serialized ListResponse
        """
        try:
            entries = list_directory(self.root)
        except OSError as e:
            logger.error(f"Failed to list {self.root}: {e}", exc_info=True)
            await context.abort(grpc.StatusCode.INTERNAL, f"Failed to list directory: {e}")

        return ListResponse(files=entries).to_json()

    async def Upload(
        self,
        request_iterator: AsyncIterator[bytes],
        context: grpc.aio.ServicerContext
    ) -> bytes:
        """
        Handle Upload RPC (client streaming).
        Reads transfer metadata from the call, appends each chunk to the
        destination and reports whether the byte count matched.
        
        Args:
            request_iterator: Stream of serialized Chunk messages
            context: gRPC context carrying the transfer metadata
            
        Returns:
            Serialized UploadStatus
        """
        try:
            metadata = TransferMetadata.from_grpc_metadata(context.invocation_metadata())
        except MetadataMissingError as e:
            logger.error(f"Upload rejected: {e}")
            await self._reject_upload(
                request_iterator, context,
                grpc.StatusCode.DATA_LOSS, f"Upload: failed to get metadata: {e}"
            )

        try:
            destination = resolve_in_root(self.root, metadata.filename)
        except InvalidFilenameError as e:
            logger.error(f"Upload rejected: {e}")
            await self._reject_upload(
                request_iterator, context, grpc.StatusCode.INVALID_ARGUMENT, str(e)
            )

        if metadata.size > self.limits.max_transfer_size:
            message = (
                f"Declared size {metadata.size} exceeds limit of "
                f"{self.limits.max_transfer_size} bytes"
            )
            logger.error(f"Upload of {destination.name} rejected: {message}")
            await self._reject_upload(
                request_iterator, context, grpc.StatusCode.RESOURCE_EXHAUSTED, message
            )

        logger.info(f"Received upload name: {destination.name}, size: {metadata.size}")

        try:
            with ChunkWriter(destination, self.limits.max_transfer_size) as writer:
                writer.begin(metadata)
                async for request_bytes in request_iterator:
                    writer.write(Chunk.from_json(request_bytes).content)
                result = writer.finish()
        except TransferTooLargeError as e:
            logger.error(f"Upload of {destination.name} rejected: {e}")
            await context.abort(grpc.StatusCode.RESOURCE_EXHAUSTED, str(e))
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Malformed chunk in upload of {destination.name}: {e}")
            await self._reject_upload(
                request_iterator, context, grpc.StatusCode.DATA_LOSS, f"Malformed chunk: {e}"
            )
        except IsADirectoryError:
            logger.error(f"Upload target {destination.name} is a directory")
            await context.abort(
                grpc.StatusCode.FAILED_PRECONDITION,
                f"{destination.name} is a directory"
            )
        except OSError as e:
            logger.error(f"Failed writing upload {destination.name}: {e}", exc_info=True)
            await context.abort(grpc.StatusCode.INTERNAL, f"Error writing file: {e}")

        logger.info(
            f"Upload of {destination.name} finished: {result.status.value}, "
            f"{result.received_bytes}/{result.declared_size} bytes in {result.chunk_count} chunks"
        )
        return UploadStatus(code=result.status).to_json()

    @staticmethod
    async def _reject_upload(
        request_iterator: AsyncIterator[bytes],
        context: grpc.aio.ServicerContext,
        code: grpc.StatusCode,
        details: str
    ) -> None:
        """
        Abort an upload refused for its metadata or a malformed chunk.

        The remaining chunks are read and discarded first so the client's
        writes and half-close complete and it receives this status instead
        of a transport error.
        """
        async for _ in request_iterator:
            pass
        await context.abort(code, details)

    async def Download(
        self,
        request_bytes: bytes,
        context: grpc.aio.ServicerContext
    ) -> AsyncIterator[bytes]:
        """
        Handle Download RPC (server streaming).
        Publishes transfer metadata as the response header, then streams
        the file in chunks.
        
        Args:
            request_bytes: Serialized DownloadRequest
            context: gRPC context
            
        Yields:
            Serialized Chunk messages
        """
        request = DownloadRequest.from_json(request_bytes)
        logger.info(f"Received download request for {request.name!r}")

        try:
            filepath = resolve_in_root(self.root, request.name)
        except InvalidFilenameError as e:
            logger.error(f"Download rejected: {e}")
            await context.abort(grpc.StatusCode.INVALID_ARGUMENT, str(e))

        if filepath.is_dir():
            await context.abort(
                grpc.StatusCode.FAILED_PRECONDITION,
                f"{filepath.name} is a directory"
            )

        try:
            size = get_file_size(filepath)
        except FileNotFoundError:
            logger.error(f"Could not stat {filepath.name}: file not found")
            await context.abort(grpc.StatusCode.NOT_FOUND, f"File not found: {request.name}")
        except OSError as e:
            # the open below reports the failure to the caller
            logger.warning(f"Could not stat {filepath.name}: {e}")
            size = 0

        metadata = TransferMetadata(filename=filepath.name, size=size)
        await context.send_initial_metadata(metadata.to_grpc_metadata())

        sent_bytes = 0
        chunk_count = 0
        try:
            for piece in iter_file_chunks(filepath, self.limits.chunk_size):
                yield Chunk(content=piece).to_json()
                sent_bytes += len(piece)
                chunk_count += 1
        except FileNotFoundError:
            logger.error(f"File not found: {filepath.name}")
            await context.abort(grpc.StatusCode.NOT_FOUND, f"File not found: {request.name}")
        except OSError as e:
            logger.error(f"Error reading {filepath.name}: {e}", exc_info=True)
            await context.abort(grpc.StatusCode.INTERNAL, f"Error reading file: {e}")

        logger.info(f"Streamed {filepath.name}: {sent_bytes} bytes in {chunk_count} chunks")


def create_server(config: ServerConfig) -> aio.Server:
    """
    Create and configure gRPC server.
    
    Args:
        config: Server configuration (root directory and transfer limits)
        
    Returns:
        Configured gRPC server, not yet bound to a port
    """
    server = aio.server(options=message_size_options(config.limits.max_transfer_size))
    servicer = FileServiceServicer(config.root, config.limits)
    add_file_service(server, servicer)
    return server


def add_file_service(server: aio.Server, servicer: FileServiceServicer) -> None:
    """Register FileService method handlers for the given servicer."""
    server.add_generic_rpc_handlers((
        grpc.method_handlers_generic_handler(
            FILE_SERVICE_NAME,
            {
                'SayHello': grpc.unary_unary_rpc_method_handler(
                    servicer.SayHello,
                    request_deserializer=identity,
                    response_serializer=identity,
                ),
                'List': grpc.unary_unary_rpc_method_handler(
                    servicer.List,
                    request_deserializer=identity,
                    response_serializer=identity,
                ),
                'Upload': grpc.stream_unary_rpc_method_handler(
                    servicer.Upload,
                    request_deserializer=identity,
                    response_serializer=identity,
                ),
                'Download': grpc.unary_stream_rpc_method_handler(
                    servicer.Download,
                    request_deserializer=identity,
                    response_serializer=identity,
                ),
            }
        ),
    ))
