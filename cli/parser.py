"""Command parser for CLI input."""

import shlex
from typing import List, Optional

from common.protocol import UserProfileBody
from cli.models import (
    CommandRequest,
    FoldersCommand,
    HistoryCommand,
    LatestCommand,
    LoadCommand,
    ProfileCommand,
    SaveCommand,
    SyncCommand,
    WalletCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "save":
        return _parse_save(tokens[1:])
    elif command_name == "load":
        return _parse_load(tokens[1:])
    elif command_name == "latest":
        return _parse_single("latest", "<project-id>", tokens[1:], LatestCommand)
    elif command_name == "history":
        return _parse_single("history", "<project-id>", tokens[1:], HistoryCommand)
    elif command_name == "folders":
        return _parse_folders(tokens[1:])
    elif command_name == "sync":
        if tokens[1:]:
            raise ParseError("sync takes no arguments")
        return SyncCommand()
    elif command_name == "wallet":
        if len(tokens) > 2:
            raise ParseError("wallet takes at most 1 argument: [address]")
        return WalletCommand(address=tokens[1] if len(tokens) == 2 else None)
    elif command_name == "profile":
        return _parse_profile(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_save(args: List[str]) -> SaveCommand:
    """Parse 'save <file> <project-id> [name] [--folder F]' command."""
    folder: Optional[str] = None
    positional: List[str] = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--folder":
            if i + 1 >= len(args):
                raise ParseError("--folder requires a folder name")
            folder = args[i + 1]
            i += 2
            continue
        if arg.startswith("--folder="):
            folder = arg.split("=", 1)[1]
            if not folder:
                raise ParseError("--folder requires a folder name")
            i += 1
            continue
        positional.append(arg)
        i += 1

    if len(positional) < 2:
        raise ParseError("save requires at least 2 arguments: <file> <project-id> [name]")
    if len(positional) > 3:
        raise ParseError("save takes at most 3 positional arguments: <file> <project-id> [name]")

    name = positional[2] if len(positional) == 3 else None
    return SaveCommand(file_path=positional[0], project_id=positional[1], name=name, folder=folder)


def _parse_load(args: List[str]) -> LoadCommand:
    """Parse 'load <project-id|tx-id> [output]' command."""
    if not args or len(args) > 2:
        raise ParseError("load requires 1 or 2 arguments: <project-id|tx-id> [output]")

    return LoadCommand(identifier=args[0], output_path=args[1] if len(args) == 2 else None)


def _parse_single(command_name: str, usage: str, args: List[str], command_type):
    if len(args) != 1:
        raise ParseError(f"{command_name} requires exactly 1 argument: {usage}")
    return command_type(args[0])


def _parse_folders(args: List[str]) -> FoldersCommand:
    """Parse 'folders [add <name>...]' command."""
    if not args:
        return FoldersCommand()
    if args[0] != "add":
        raise ParseError(f"Unknown folders subcommand: {args[0]}")
    if len(args) < 2:
        raise ParseError("folders add requires at least one folder name")
    return FoldersCommand(add=tuple(args[1:]))


def _parse_profile(args: List[str]) -> ProfileCommand:
    """Parse 'profile [address]', 'profile set <field> <value>' and 'profile find <name>'."""
    if not args:
        return ProfileCommand()

    if args[0] == "set":
        if len(args) != 3:
            raise ParseError("profile set requires 2 arguments: <field> <value>")
        if args[1] not in UserProfileBody.FIELDS:
            raise ParseError(
                f"Unknown profile field: {args[1]} (one of: {', '.join(UserProfileBody.FIELDS)})"
            )
        return ProfileCommand(action="set", field=args[1], value=args[2])

    if args[0] == "find":
        if len(args) < 2:
            raise ParseError("profile find requires a display name")
        return ProfileCommand(action="find", display_name=" ".join(args[1:]))

    if len(args) > 1:
        raise ParseError("profile takes at most 1 argument: [address]")
    return ProfileCommand(address=args[0])
