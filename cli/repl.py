"""REPL with prompt_toolkit for user interaction."""

import asyncio
import os
import sys

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory

from cli.commands import (
    close_session,
    handle_folders,
    handle_history,
    handle_latest,
    handle_load,
    handle_profile,
    handle_save,
    handle_sync,
    handle_wallet,
)
from cli.completer import ClayStoreCompleter
from cli.constants import (
    HELP_TEXT,
    LOGO,
    PROMPT_TEXT,
    STYLE,
    WELCOME_HELP,
    WELCOME_TITLE,
)
from cli.models import (
    FoldersCommand,
    HistoryCommand,
    LatestCommand,
    LoadCommand,
    ProfileCommand,
    SaveCommand,
    SyncCommand,
    WalletCommand,
)
from cli.parser import ParseError, parse_command


def clear_screen() -> None:
    """Clear the terminal screen (cross-platform)."""
    if sys.platform == "win32":
        os.system("cls")
    else:
        os.system("clear")


def show_logo() -> None:
    """Display ClayStore logo with ANSI colors."""
    print(LOGO)


async def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, SaveCommand):
        return await handle_save(cmd_obj)
    elif isinstance(cmd_obj, LoadCommand):
        return await handle_load(cmd_obj)
    elif isinstance(cmd_obj, LatestCommand):
        return await handle_latest(cmd_obj)
    elif isinstance(cmd_obj, HistoryCommand):
        return await handle_history(cmd_obj)
    elif isinstance(cmd_obj, FoldersCommand):
        return await handle_folders(cmd_obj)
    elif isinstance(cmd_obj, SyncCommand):
        return await handle_sync(cmd_obj)
    elif isinstance(cmd_obj, WalletCommand):
        return handle_wallet(cmd_obj)
    elif isinstance(cmd_obj, ProfileCommand):
        return await handle_profile(cmd_obj)
    else:
        return f"Unknown command type: {type(cmd_obj)}"


async def repl_async() -> None:
    """Interactive loop; every command runs on the same event loop."""
    history = InMemoryHistory()
    session: PromptSession = PromptSession(
        completer=ClayStoreCompleter(), history=history, style=STYLE
    )

    clear_screen()
    show_logo()
    print(WELCOME_TITLE)
    print(WELCOME_HELP)

    try:
        while True:
            try:
                user_input = await session.prompt_async([("class:prompt", PROMPT_TEXT)])

                if not user_input.strip():
                    continue

                if user_input.strip() == "exit":
                    print("Goodbye!")
                    break

                if user_input.strip() == "help":
                    print(HELP_TEXT)
                    continue

                if user_input.strip() == "clear":
                    clear_screen()
                    show_logo()
                    print(WELCOME_TITLE)
                    print(WELCOME_HELP)
                    continue

                cmd_obj = parse_command(user_input)
                result = await dispatch_command(cmd_obj)
                print(result)

            except ParseError as e:
                print(f"Error: {e}")
            except KeyboardInterrupt:
                continue
            except EOFError:
                print("\nGoodbye!")
                break
    finally:
        await close_session()


def repl_loop() -> None:
    """Start interactive REPL with prompt_toolkit."""
    asyncio.run(repl_async())
