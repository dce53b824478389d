"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["hello", "list", "upload", "download", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#2E8B57 bold",
        "command": "#0088ff bold",
    }
)

GREEN = "\033[38;2;46;139;87m"
RESET = "\033[0m"

WELCOME_TITLE = f"{GREEN}fileserver CLI{RESET} - stream files to and from a remote directory"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "fileserver> "

HELP_TEXT = """Available commands:
  hello [name]                        Greet the server (connectivity check)
  list                                List files in the server directory
  upload <path>                       Upload a local file under its base name
  download <filename> [output_dir]    Download a file (defaults to the configured download dir)
  clear                               Clear screen and redisplay welcome message
  help                                Show this help
  exit                                Exit REPL

Examples:
  hello
  list
  upload ./report.pdf
  download report.pdf
  download report.pdf downloads"""
