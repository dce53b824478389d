"""CLI entry point.

With arguments, runs a single command (e.g. ``fileserver-cli upload notes.txt``)
and exits non-zero on failure; without arguments, starts the REPL.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import List

from common.logging_config import setup_logging
from cli.commands import dispatch_command
from cli.config import DEFAULT_CONFIG_PATH, Config
from cli.fileserver_client import FileServerClient
from cli.parser import ParseError, parse_tokens
from cli.repl import repl_loop


async def run(args: List[str], config: Config) -> int:
    """Run one command or the REPL against the configured server."""
    async with FileServerClient.from_config(config) as client:
        if not args:
            await repl_loop(client)
            return 0

        cmd_obj = parse_tokens(args)
        result = await dispatch_command(cmd_obj, client)
        print(result.message)
        return 0 if result.success else 1


def main() -> None:
    """Entry point for CLI."""
    args = sys.argv[1:]
    debug = '--debug' in args
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')
    
    logger = setup_logging('cli', log_level=log_level)
    setup_logging('common', log_level=log_level)
    
    if debug:
        logger.info("Debug logging enabled")
        args.remove('--debug')

    config = Config(Path(os.getenv('FILESERVER_CLI_CONFIG', str(DEFAULT_CONFIG_PATH))))

    try:
        exit_code = asyncio.run(run(args, config))
    except ParseError as e:
        print(f"Error: {e}")
        exit_code = 2
    except KeyboardInterrupt:
        exit_code = 130
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
