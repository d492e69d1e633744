"""Tests for the CLI command parser."""

import pytest

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


class TestSave:

    def test_minimal(self):
        assert parse_command("save castle.json castle-01") == SaveCommand("castle.json", "castle-01")

    def test_name_and_folder(self):
        cmd = parse_command('save castle.json castle-01 "Big Castle" --folder medieval')

        assert cmd.name == "Big Castle"
        assert cmd.folder == "medieval"

    def test_folder_with_equals_anywhere(self):
        cmd = parse_command("save --folder=medieval castle.json castle-01")

        assert cmd == SaveCommand("castle.json", "castle-01", folder="medieval")

    @pytest.mark.parametrize("line", [
        "save",
        "save castle.json",
        "save a b c d",
        "save a b --folder",
        "save a b --folder=",
    ])
    def test_invalid(self, line):
        with pytest.raises(ParseError):
            parse_command(line)


class TestOtherCommands:

    def test_load(self):
        assert parse_command("load castle-01") == LoadCommand("castle-01")
        assert parse_command("load castle-01 out/castle.json") == LoadCommand("castle-01", "out/castle.json")

        with pytest.raises(ParseError):
            parse_command("load")
        with pytest.raises(ParseError):
            parse_command("load a b c")

    def test_latest_and_history(self):
        assert parse_command("latest castle-01") == LatestCommand("castle-01")
        assert parse_command("history castle-01") == HistoryCommand("castle-01")

        with pytest.raises(ParseError):
            parse_command("latest")
        with pytest.raises(ParseError):
            parse_command("history a b")

    def test_folders(self):
        assert parse_command("folders") == FoldersCommand()
        assert parse_command("folders add medieval 'sci fi'") == FoldersCommand(add=("medieval", "sci fi"))

        with pytest.raises(ParseError):
            parse_command("folders add")
        with pytest.raises(ParseError):
            parse_command("folders remove x")

    def test_sync(self):
        assert parse_command("sync") == SyncCommand()

        with pytest.raises(ParseError):
            parse_command("sync now")

    def test_wallet(self):
        assert parse_command("wallet") == WalletCommand()
        assert parse_command("wallet 0xABC") == WalletCommand("0xABC")

        with pytest.raises(ParseError):
            parse_command("wallet a b")

    def test_profile(self):
        assert parse_command("profile") == ProfileCommand()
        assert parse_command("profile 0xABC") == ProfileCommand(address="0xABC")
        assert parse_command('profile set bio "Wheel thrown"') == ProfileCommand(
            action="set", field="bio", value="Wheel thrown"
        )
        assert parse_command("profile find Ada Lovelace") == ProfileCommand(
            action="find", display_name="Ada Lovelace"
        )

    @pytest.mark.parametrize("line", [
        "profile a b",
        "profile set bio",
        "profile set nickname x",
        "profile set bio a b",
        "profile find",
    ])
    def test_profile_invalid(self, line):
        with pytest.raises(ParseError):
            parse_command(line)


@pytest.mark.parametrize("line", ["", "   ", "frobnicate", 'save "unterminated'])
def test_bad_input(line):
    with pytest.raises(ParseError):
        parse_command(line)
