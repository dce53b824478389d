"""Project-wide constants (chunk sizing, transfer limits, default ports)."""

MAX_CHUNK_SIZE_BYTES: int = 4 * 1024 * 1024  # 4 MiB per chunk message
MAX_TRANSFER_SIZE_BYTES: int = 8 * 1024 * 1024 * 1024  # 8 GiB per file

# gRPC channel args are C ints
GRPC_MAX_OPTION_VALUE: int = 2 ** 31 - 1

DEFAULT_SERVER_HOST: str = "localhost"
DEFAULT_SERVER_PORT: int = 50051

FILE_SERVICE_NAME: str = "fileserver.FileService"

DEFAULT_TIMEOUT_SECONDS: int = 1
SHUTDOWN_GRACE_SECONDS: int = 5

GRPC_KEEPALIVE_TIME_MS: int = 10_000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 1_000

METADATA_FILENAME_KEY: str = "filename-bin"
METADATA_SIZE_KEY: str = "size"
METADATA_TIMESTAMP_KEY: str = "timestamp"
