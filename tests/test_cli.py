"""Tests for CLI commands - record, games, leaderboard, snapshots, sync."""

import json
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from scoresync import __version__
from scoresync.cli import cli
from scoresync.cli.games import parse_player
from scoresync.cli.sync import describe_event
from scoresync.core.records import GameRecord, encode_records
from scoresync.sync.store import LocalRecordStore
from scoresync.sync.types import SyncEvent


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the CLI at a temporary config directory."""
    config = tmp_path / ".scoresync"
    monkeypatch.setenv("SCORESYNC_HOME", str(config))
    return config


def stored_records(home: Path) -> list[GameRecord]:
    store = LocalRecordStore(home / "records.db")
    try:
        return store.read_all()
    finally:
        store.close()


def seed(home: Path, *records: GameRecord) -> None:
    store = LocalRecordStore(home / "records.db")
    try:
        for record in records:
            store.append(record)
    finally:
        store.close()


class TestParsePlayer:
    """Tests for NAME:COLOR:SCORE parsing."""

    def test_valid(self) -> None:
        player = parse_player("Alice:red:30")
        assert (player.name, player.color, player.score) == ("Alice", "red", 30)

    def test_name_with_colon(self) -> None:
        """Only the last two colons separate fields."""
        assert parse_player("Dr: Who:blue:7").name == "Dr: Who"

    @pytest.mark.parametrize("spec", ["Alice", "Alice:red", ":red:3", "Alice:red:many"])
    def test_invalid(self, spec: str) -> None:
        with pytest.raises(click.BadParameter):
            parse_player(spec)


class TestGameCommands:
    """Tests for 'scoresync record', 'games' and 'leaderboard'."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_record_stores_game(self, runner: CliRunner, home: Path) -> None:
        """A recorded game is persisted with its winner."""
        result = runner.invoke(
            cli, ["record", "Alice:red:30", "Bob:blue:25", "--date", "2024-01-01T00:00:00.000Z"]
        )
        assert result.exit_code == 0
        assert "Winner: Alice" in result.output

        [game] = stored_records(home)
        assert game.date == "2024-01-01T00:00:00.000Z"
        assert game.winners == ("Alice",)

    def test_record_tie(self, runner: CliRunner, home: Path) -> None:
        """Tied players are all winners."""
        result = runner.invoke(cli, ["record", "Alice:red:30", "Bob:blue:30"])
        assert result.exit_code == 0
        assert "Winner: Alice, Bob" in result.output

    def test_record_rejects_duplicate_names(self, runner: CliRunner, home: Path) -> None:
        """Duplicate player names are refused and nothing is stored."""
        result = runner.invoke(cli, ["record", "Alice:red:30", "alice:blue:25"])
        assert result.exit_code == 1
        assert "Duplicate player name" in result.output
        assert stored_records(home) == []

    def test_record_rejects_bad_player(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["record", "Alice-30"])
        assert result.exit_code != 0
        assert "NAME:COLOR:SCORE" in result.output

    def test_games_empty(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["games"])
        assert result.exit_code == 0
        assert "No games recorded." in result.output

    def test_games_lists_records(
        self, runner: CliRunner, home: Path, alice_bob: GameRecord, carol_dave: GameRecord
    ) -> None:
        """Games are listed in stored order."""
        seed(home, alice_bob, carol_dave)
        result = runner.invoke(cli, ["games"])
        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines[0].startswith("2024-01-01T00:00:00Z")
        assert "Alice (red) 30" in lines[0]
        assert lines[1].endswith("-> Carol")

    def test_leaderboard(self, runner: CliRunner, home: Path, make_record) -> None:
        """Win counts are shown most first."""
        seed(
            home,
            make_record("d1", ("Alice", "red", 10), ("Bob", "blue", 20)),
            make_record("d2", ("Alice", "red", 5), ("Bob", "blue", 20)),
            make_record("d3", ("Alice", "red", 50), ("Bob", "blue", 20)),
        )
        result = runner.invoke(cli, ["leaderboard"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["1. Bob - 2 wins", "2. Alice - 1 win"]

    def test_corrupt_store(self, runner: CliRunner, home: Path) -> None:
        """An unreadable store is reported, not a traceback."""
        store = LocalRecordStore(home / "records.db")
        store.set_item("carcassonne_games", "garbage")
        store.close()

        result = runner.invoke(cli, ["games"])
        assert result.exit_code == 1
        assert "corrupt" in result.output


class TestSnapshotCommands:
    """Tests for 'scoresync export', 'import' and 'exchange'."""

    def test_export_stdout(self, runner: CliRunner, home: Path, alice_bob: GameRecord) -> None:
        seed(home, alice_bob)
        result = runner.invoke(cli, ["export"])
        assert result.exit_code == 0
        assert json.loads(result.output) == [alice_bob.to_wire()]

    def test_export_to_file(self, runner: CliRunner, home: Path, tmp_path: Path, alice_bob: GameRecord) -> None:
        seed(home, alice_bob)
        target = tmp_path / "games.json"
        result = runner.invoke(cli, ["export", "-o", str(target)])
        assert result.exit_code == 0
        assert "Exported to" in result.output
        assert json.loads(target.read_text(encoding="utf-8")) == [alice_bob.to_wire()]

    def test_import_file(
        self, runner: CliRunner, home: Path, tmp_path: Path, alice_bob: GameRecord, carol_dave: GameRecord
    ) -> None:
        """Importing merges only unknown games."""
        seed(home, alice_bob)
        source = tmp_path / "peer.json"
        source.write_text(encode_records([alice_bob, carol_dave]), encoding="utf-8")

        result = runner.invoke(cli, ["import", str(source)])

        assert result.exit_code == 0
        assert "Imported 1 new game." in result.output
        assert stored_records(home) == [alice_bob, carol_dave]

    def test_import_stdin(self, runner: CliRunner, home: Path, alice_bob: GameRecord) -> None:
        result = runner.invoke(cli, ["import", "-"], input=encode_records([alice_bob]))
        assert result.exit_code == 0
        assert "Imported 1 new game." in result.output

    def test_import_rejects_invalid(self, runner: CliRunner, home: Path, alice_bob: GameRecord) -> None:
        """An invalid payload fails and leaves the store untouched."""
        seed(home, alice_bob)
        result = runner.invoke(cli, ["import", "-"], input='[{"players": []}]')
        assert result.exit_code == 1
        assert "Import failed" in result.output
        assert stored_records(home) == [alice_bob]

    def test_import_reports_conflicts(self, runner: CliRunner, home: Path, make_record) -> None:
        """Differing copies of a known game are kept local and reported."""
        local = make_record("2024-01-01T00:00:00Z", ("Alice", "red", 30), ("Bob", "blue", 25))
        remote = make_record("2024-01-01T00:00:00Z", ("Alice", "red", 3), ("Bob", "blue", 25))
        seed(home, local)

        result = runner.invoke(cli, ["import", "-"], input=encode_records([remote]))

        assert result.exit_code == 0
        assert "Imported 0 new games." in result.output
        assert "kept local version" in result.output
        assert stored_records(home) == [local]

    def test_exchange(
        self, runner: CliRunner, home: Path, tmp_path: Path, alice_bob: GameRecord, carol_dave: GameRecord
    ) -> None:
        """Exchange writes our payload and merges the peer's."""
        seed(home, alice_bob)
        peer = tmp_path / "peer.json"
        peer.write_text(encode_records([carol_dave]), encoding="utf-8")
        output = tmp_path / "mine.json"

        result = runner.invoke(cli, ["exchange", str(peer), "-o", str(output)])

        assert result.exit_code == 0
        assert "Imported 1 new game." in result.output
        assert json.loads(output.read_text(encoding="utf-8")) == [alice_bob.to_wire()]
        assert stored_records(home) == [alice_bob, carol_dave]

    def test_exchange_invalid_peer_payload(
        self, runner: CliRunner, home: Path, tmp_path: Path
    ) -> None:
        peer = tmp_path / "peer.json"
        peer.write_text("not a payload", encoding="utf-8")

        result = runner.invoke(cli, ["exchange", str(peer), "-o", str(tmp_path / "mine.json")])

        assert result.exit_code == 1
        assert "Invalid scanned data" in result.output


class TestSyncCommands:
    """Tests for 'scoresync sync', 'compat' and 'config'."""

    def test_sync_without_peer(self, runner: CliRunner, home: Path) -> None:
        """Without a peer address the stream link is unavailable."""
        result = runner.invoke(cli, ["sync"])
        assert result.exit_code == 1
        assert "peer address" in result.output

    def test_sync_unreachable_peer(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["sync", "ws://127.0.0.1:1", "--timeout", "2"])
        assert result.exit_code == 1
        assert "Failed to connect" in result.output

    def test_compat(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["compat", "ws://10.0.0.2:8765"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0].startswith("stream: supported")
        assert lines[1].startswith("payload: supported")

    def test_compat_without_peer(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["compat"])
        assert result.output.startswith("stream: unavailable")

    def test_config_roundtrip(self, runner: CliRunner, home: Path) -> None:
        """Settings are persisted and used as defaults."""
        result = runner.invoke(cli, ["config", "peer_url", "ws://10.0.0.2:8765"])
        assert result.exit_code == 0
        assert json.loads((home / "config.json").read_text())["peer_url"] == "ws://10.0.0.2:8765"

        assert runner.invoke(cli, ["config", "peer_url"]).output.strip() == "ws://10.0.0.2:8765"
        assert runner.invoke(cli, ["compat"]).output.startswith("stream: supported")

    def test_config_rejects_unknown_key(self, runner: CliRunner, home: Path) -> None:
        result = runner.invoke(cli, ["config", "colour", "red"])
        assert result.exit_code != 0

    def test_describe_event(self) -> None:
        assert describe_event(SyncEvent.connected("table")) == "Connected to table"
        assert describe_event(SyncEvent.sync_complete(1)) == "Sync complete: 1 new game"
        assert describe_event(SyncEvent.failed("boom")) == "Error: boom"
        assert describe_event(SyncEvent.data_received([])) is None
