"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["save", "load", "latest", "history", "folders", "sync", "wallet", "profile", "clear", "exit", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#C8733A bold",
        "command": "#0088ff bold",
    }
)

CLAY = "\033[38;2;200;115;58m"
GREEN = "\033[32m"
RESET = "\033[0m"

LOGO = f"""{CLAY}
  ██████╗██╗      █████╗ ██╗   ██╗███████╗████████╗ ██████╗ ██████╗ ███████╗
 ██╔════╝██║     ██╔══██╗╚██╗ ██╔╝██╔════╝╚══██╔══╝██╔═══██╗██╔══██╗██╔════╝
 ██║     ██║     ███████║ ╚████╔╝ ███████╗   ██║   ██║   ██║██████╔╝█████╗
 ██║     ██║     ██╔══██║  ╚██╔╝  ╚════██║   ██║   ██║   ██║██╔══██╗██╔══╝
 ╚██████╗███████╗██║  ██║   ██║   ███████║   ██║   ╚██████╔╝██║  ██║███████╗
  ╚═════╝╚══════╝╚═╝  ╚═╝   ╚═╝   ╚══════╝   ╚═╝    ╚═════╝ ╚═╝  ╚═╝╚══════╝
{RESET}"""

WELCOME_TITLE = "ClayStore CLI - Chunked project storage on the ledger"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "claystore> "

DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  save <file> <project-id> [name] [--folder F]   Upload a project file as a new version
  load <project-id|tx-id> [output]               Download a project (default: downloads/<id>.json)
  latest <project-id>                            Show latest and root transaction of a project
  history <project-id>                           List every stored version, newest first
  folders                                        Show your folder list
  folders add <name>...                          Add folders to your folder list
  sync                                           Rebuild local references from the ledger
  wallet [address]                               Show or set the wallet address used as author
  profile [address]                              Show a user profile (default: your own)
  profile set <field> <value>                    Change a field of your profile (displayName, bio, ...)
  profile find <display name>                    Find the wallet using a display name
  clear                                          Clear screen and redisplay welcome message
  help                                           Show this help
  exit                                           Exit REPL

Saving a project id again creates a new version chained to the first one.
Examples:
  wallet 0xAbC123
  save scenes/castle.json castle-01 "Castle" --folder medieval
  latest castle-01
  load castle-01 downloads/castle.json
  history castle-01
  folders add medieval sci-fi
  profile set displayName Ada"""
