"""Custom completer for the ClayStore CLI with file autocompletion."""

from pathlib import Path
from typing import Iterable

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from cli.constants import COMMANDS


class ClayStoreCompleter(Completer):
    """
    Custom completer that provides:
    - Command name completion for the first token
    - JSON file completion for the first argument of 'save'
    """

    def get_completions(
        self, document: Document, complete_event
    ) -> Iterable[Completion]:
        text = document.text_before_cursor
        tokens = text.split()

        is_typing_new_token = text.endswith(" ") or not tokens

        if not tokens or (len(tokens) == 1 and not is_typing_new_token):
            yield from self._complete_commands(tokens[0] if tokens else "")
            return

        if tokens[0].lower() != "save":
            return

        argument_position = len(tokens) if is_typing_new_token else len(tokens) - 1
        if argument_position != 1:
            return

        current_word = "" if is_typing_new_token else tokens[-1]
        yield from self._complete_json_files(current_word)

    def _complete_commands(self, partial: str) -> Iterable[Completion]:
        """Complete command names matching the partial input."""
        partial_lower = partial.lower()
        for cmd in COMMANDS:
            if cmd.startswith(partial_lower):
                yield Completion(cmd, start_position=-len(partial))

    def _complete_json_files(self, partial: str) -> Iterable[Completion]:
        """Complete .json paths relative to the working directory."""
        partial_path = Path(partial)
        if partial.endswith("/"):
            directory, prefix = partial_path, ""
        else:
            directory, prefix = partial_path.parent, partial_path.name

        base = Path.cwd() / directory
        if not base.is_dir():
            return

        for item in sorted(base.iterdir()):
            if not item.name.startswith(prefix):
                continue
            if item.is_dir():
                candidate = f"{directory / item.name}/" if str(directory) != "." else f"{item.name}/"
            elif item.name.lower().endswith(".json"):
                candidate = str(directory / item.name) if str(directory) != "." else item.name
            else:
                continue
            yield Completion(candidate, start_position=-len(partial))
