"""Command handler functions for CLI operations."""

import json
from pathlib import Path
from typing import Optional

from common.constants import TAG_CREATED_AT, TAG_DATA_TYPE, TAG_ROOT_TX
from common.logging_config import get_logger
from common.protocol import UserProfileBody
from common.types import TagContext
from chunkstore.exceptions import ChunkStoreError, DownloadError, MissingChunksError, UploadError
from cli.constants import DOWNLOADS_DIR
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
from cli.session import ClayStoreSession
from cli.utils import format_file_size, progress_printer, safe_file_name

logger = get_logger(__name__)


_session: Optional[ClayStoreSession] = None


def get_session() -> ClayStoreSession:
    """
    Get or create global ClayStoreSession instance.

    Returns:
        ClayStoreSession instance
    """
    global _session
    if _session is None:
        logger.debug("Creating new ClayStoreSession instance")
        _session = ClayStoreSession.from_default_config()
    return _session


async def close_session() -> None:
    global _session
    if _session is not None:
        await _session.close()
        _session = None


def format_error(error: ChunkStoreError) -> str:
    """One-line description of a storage error."""
    if isinstance(error, UploadError) and error.chunk_index is not None:
        return f"Error: upload failed at chunk {error.chunk_index}: {error}"
    if isinstance(error, DownloadError) and error.chunk_index is not None:
        return f"Error: download failed at chunk {error.chunk_index}: {error}"
    if isinstance(error, MissingChunksError):
        return f"Error: {error}. The upload may still be indexing, try again shortly."
    return f"Error: {error}"


async def handle_save(cmd: SaveCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'save' command.

    Args:
        cmd: SaveCommand with file path, project id and optional name/folder
        session: Optional ClayStoreSession for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing save command: file={cmd.file_path} project_id={cmd.project_id}")
    if session is None:
        session = get_session()

    path = Path(cmd.file_path)
    if not path.exists():
        return f"Error: File not found: {cmd.file_path}"
    if not path.is_file():
        return f"Error: Not a file: {cmd.file_path}"

    try:
        document = path.read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        return f"Error: Cannot read {cmd.file_path}: {e}"

    try:
        json.loads(document)
    except json.JSONDecodeError as e:
        return f"Error: {cmd.file_path} is not valid JSON ({e.msg} at line {e.lineno})"

    context = TagContext(
        logical_id=cmd.project_id,
        name=cmd.name or path.stem,
        author=session.wallet_address or "",
        folder=cmd.folder or "",
    )

    try:
        result = await session.projects.save(document, context, on_progress=progress_printer("Uploading"))
    except ChunkStoreError as e:
        logger.error(f"Save failed [project_id={cmd.project_id}]: {e}")
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during save: {e}", exc_info=True)
        return f"Unexpected error during save: {e}"

    size = format_file_size(len(document.encode('utf-8')))
    lines = [
        f"Saved {cmd.project_id} ({size}) as {'a new version' if result.is_update else 'a new project'}",
        f"Transaction: {result.transaction_id}",
        f"Root:        {result.root_transaction_id}",
    ]
    if result.was_chunked:
        lines.append(f"Chunk set:   {result.chunk_set_id}")
    return "\n".join(lines)


async def handle_load(cmd: LoadCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'load' command.

    Args:
        cmd: LoadCommand with project or transaction id and optional output path
        session: Optional ClayStoreSession for dependency injection (testing)

    Returns:
        Success or error message
    """
    logger.info(f"Executing load command: identifier={cmd.identifier} output_path={cmd.output_path}")
    if session is None:
        session = get_session()

    try:
        result = await session.projects.load(cmd.identifier, on_progress=progress_printer("Downloading"))
    except ChunkStoreError as e:
        logger.error(f"Load failed [identifier={cmd.identifier}]: {e}")
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during load: {e}", exc_info=True)
        return f"Unexpected error during load: {e}"

    output = Path(cmd.output_path) if cmd.output_path else Path(DOWNLOADS_DIR) / f"{safe_file_name(cmd.identifier)}.json"
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(result.document, encoding='utf-8')
    except OSError as e:
        return f"Error: Cannot write {output}: {e}"

    size = format_file_size(len(result.document.encode('utf-8')))
    source = "chunked" if result.was_chunked else "single transaction"
    return f"Loaded {cmd.identifier} ({size}, {source}) from {result.transaction_id}\nWritten to {output}"


async def handle_latest(cmd: LatestCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'latest' command.

    Returns:
        Latest and root transaction ids, or a not-found message
    """
    if session is None:
        session = get_session()

    try:
        latest = await session.projects.resolve_latest(cmd.project_id)
    except ChunkStoreError as e:
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during latest: {e}", exc_info=True)
        return f"Unexpected error during latest: {e}"

    if latest is None:
        return f"No versions found for {cmd.project_id}"

    reference = session.projects.references.get_reference(cmd.project_id)
    lines = [f"Latest: {latest}"]
    if reference:
        lines.append(f"Root:   {reference.root_transaction_id}")
    return "\n".join(lines)


async def handle_history(cmd: HistoryCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'history' command.

    Returns:
        Formatted list of versions, newest first
    """
    if session is None:
        session = get_session()

    try:
        versions = await session.projects.history(cmd.project_id)
    except ChunkStoreError as e:
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during history: {e}", exc_info=True)
        return f"Unexpected error during history: {e}"

    if not versions:
        return f"No versions found for {cmd.project_id}"

    lines = [f"{len(versions)} version(s) of {cmd.project_id}:"]
    for position, tx in enumerate(versions, start=1):
        kind = "chunked" if (tx.tag(TAG_DATA_TYPE) or "").endswith("-manifest") else "single"
        marker = "" if tx.tag(TAG_ROOT_TX) else "  (root)"
        lines.append(f"  {position}. {tx.transaction_id}  {tx.tag(TAG_CREATED_AT) or '-'}  {kind}{marker}")
    return "\n".join(lines)


def _print_status(status: str, detail: str) -> None:
    print(f"  {status}: {detail}")


async def handle_folders(cmd: FoldersCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'folders' command.

    Returns:
        Folder list or error message
    """
    if session is None:
        session = get_session()

    wallet = session.wallet_address
    if not wallet:
        return "Error: No wallet address set. Please run: wallet <address>"

    try:
        if cmd.add:
            folders = await session.folders.add_folders(wallet, cmd.add, on_status=_print_status)
        else:
            folders = await session.folders.download(wallet)
    except ChunkStoreError as e:
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during folders: {e}", exc_info=True)
        return f"Unexpected error during folders: {e}"

    if not folders:
        return "No folders yet"
    return "Folders:\n" + "\n".join(f"  {name}" for name in folders)


async def handle_sync(cmd: SyncCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'sync' command.

    Returns:
        Number of references rebuilt
    """
    if session is None:
        session = get_session()

    wallet = session.wallet_address
    if not wallet:
        return "Error: No wallet address set. Please run: wallet <address>"

    try:
        updated = await session.projects.sync_references(wallet)
        folder_tx = await session.folders.sync(wallet)
    except ChunkStoreError as e:
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during sync: {e}", exc_info=True)
        return f"Unexpected error during sync: {e}"

    folder_line = f"Folder structure: {folder_tx}" if folder_tx else "Folder structure: none stored"
    return f"Synced {updated} project reference(s)\n{folder_line}"


def _format_profile(profile: UserProfileBody) -> str:
    lines = [f"Profile of {profile.wallet_address}:"]
    for key, attr in UserProfileBody.FIELDS.items():
        value = getattr(profile, attr)
        if value:
            lines.append(f"  {key}: {value}")
    if len(lines) == 1:
        lines.append("  (no fields set)")
    return "\n".join(lines)


async def handle_profile(cmd: ProfileCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'profile' command.

    Returns:
        Profile contents, lookup result or error message
    """
    if session is None:
        session = get_session()

    try:
        if cmd.action == "find":
            wallet = await session.profiles.find_by_display_name(cmd.display_name or "")
            if wallet is None:
                return f"No profile with display name {cmd.display_name}"
            return f"{cmd.display_name}: {wallet}"

        address = cmd.address or session.wallet_address
        if not address:
            return "Error: No wallet address set. Please run: wallet <address>"

        if cmd.action == "set":
            attr = UserProfileBody.FIELDS[cmd.field]
            await session.profiles.update(address, **{attr: cmd.value})
            return f"Profile updated: {cmd.field} = {cmd.value}"

        profile = await session.profiles.download(address)
    except ChunkStoreError as e:
        return format_error(e)
    except Exception as e:
        logger.error(f"Unexpected error during profile: {e}", exc_info=True)
        return f"Unexpected error during profile: {e}"

    if profile is None:
        return f"No profile stored for {address.lower()}"
    return _format_profile(profile)


def handle_wallet(cmd: WalletCommand, session: Optional[ClayStoreSession] = None) -> str:
    """
    Handle 'wallet' command.

    Returns:
        Current wallet address or confirmation of the new one
    """
    if session is None:
        session = get_session()

    if cmd.address is None:
        wallet = session.wallet_address
        return f"Wallet: {wallet}" if wallet else "No wallet address set"

    session.config.set_wallet_address(cmd.address)
    return f"Wallet set to {cmd.address.lower()}"
