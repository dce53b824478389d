"""gRPC substrate helpers: method paths, serializers and channel options."""

from typing import List, Tuple

from common.constants import (
    FILE_SERVICE_NAME,
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
    GRPC_MAX_OPTION_VALUE,
)


def method_path(method: str) -> str:
    """Full RPC path for a FileService method."""
    return f'/{FILE_SERVICE_NAME}/{method}'


def identity(data: bytes) -> bytes:
    """Pass-through (de)serializer; messages are pre-encoded JSON bytes."""
    return data


def message_size_limit(max_transfer_size: int) -> int:
    """Clamp the configured transfer size to what gRPC accepts as a channel arg."""
    return max(1, min(max_transfer_size, GRPC_MAX_OPTION_VALUE))


def message_size_options(max_transfer_size: int) -> List[Tuple[str, int]]:
    """Send/receive size options shared by server and client."""
    limit = message_size_limit(max_transfer_size)
    return [
        ('grpc.max_receive_message_length', limit),
        ('grpc.max_send_message_length', limit),
    ]


def client_channel_options(max_transfer_size: int) -> List[Tuple[str, int]]:
    """Options for client channels: size limits plus keepalive pings."""
    return message_size_options(max_transfer_size) + [
        ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
        ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
        ('grpc.keepalive_permit_without_calls', 1),
    ]
