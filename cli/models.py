"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Tuple


@dataclass(frozen=True)
class SaveCommand:
    """Upload a project file as a new version."""

    file_path: str
    project_id: str
    name: Optional[str] = None
    folder: Optional[str] = None
    command: Literal["save"] = "save"


@dataclass(frozen=True)
class LoadCommand:
    """Load a project by id or transaction id."""

    identifier: str
    output_path: Optional[str] = None
    command: Literal["load"] = "load"


@dataclass(frozen=True)
class LatestCommand:
    """Show the latest transaction of a project."""

    project_id: str
    command: Literal["latest"] = "latest"


@dataclass(frozen=True)
class HistoryCommand:
    """List every stored version of a project."""

    project_id: str
    command: Literal["history"] = "history"


@dataclass(frozen=True)
class FoldersCommand:
    """Show the folder list, or add folders to it."""

    add: Tuple[str, ...] = ()
    command: Literal["folders"] = "folders"


@dataclass(frozen=True)
class SyncCommand:
    """Rebuild local references from the ledger."""

    command: Literal["sync"] = "sync"


@dataclass(frozen=True)
class WalletCommand:
    """Show or set the wallet address used as author."""

    address: Optional[str] = None
    command: Literal["wallet"] = "wallet"


@dataclass(frozen=True)
class ProfileCommand:
    """Show a profile, change a field of your own, or look a wallet up by display name."""

    action: Literal["show", "set", "find"] = "show"
    address: Optional[str] = None
    field: Optional[str] = None
    value: Optional[str] = None
    display_name: Optional[str] = None
    command: Literal["profile"] = "profile"


CommandRequest = (
    SaveCommand
    | LoadCommand
    | LatestCommand
    | HistoryCommand
    | FoldersCommand
    | SyncCommand
    | WalletCommand
    | ProfileCommand
)
