"""Entry point for the file server.
Serves one directory over gRPC until interrupted.
"""

import asyncio
import os
import signal
import sys

from common.constants import SHUTDOWN_GRACE_SECONDS
from common.logging_config import setup_logging
from fileserver.config import ServerConfig, load_server_config
from fileserver.grpc_server import create_server

logger = setup_logging('fileserver')
setup_logging('common')


async def serve(config: ServerConfig) -> None:
    """
    Start and run gRPC server.

    Args:
        config: Resolved server configuration
    """
    server = create_server(config)
    server.add_insecure_port(config.listen_addr)

    logger.info(f"Serving {config.root} on {config.listen_addr}")
    await server.start()

    stopping = asyncio.Event()

    async def shutdown(sig=None):
        if stopping.is_set():
            return
        stopping.set()
        if sig:
            logger.info(f"Received signal {sig.name}, shutting down...")
        else:
            logger.info("Shutting down...")
        await server.stop(SHUTDOWN_GRACE_SECONDS)
        logger.info("File server stopped")

    if sys.platform != 'win32':
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda s=sig: asyncio.create_task(shutdown(s)))

    try:
        await server.wait_for_termination()
    except asyncio.CancelledError:
        await shutdown()
        raise


def main() -> None:
    """Bootstrap the file server. The first argument, if any, is the served directory."""
    root = sys.argv[1] if len(sys.argv) >= 2 else None
    config = load_server_config(root)

    if not config.root.is_dir():
        logger.error(f"Served root {config.root} is not a directory")
        sys.exit(1)
    if not os.access(config.root, os.W_OK):
        logger.warning(f"Served root {config.root} is not writable; uploads will fail")

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
