"""Tests for the s3shelf CLI."""

import asyncio
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from s3shelf import __version__
from s3shelf.cli.main import app
from s3shelf.storage.memory import MemoryBackend
from s3shelf.storage.object_store import ObjectStore

runner = CliRunner()


@pytest.fixture
def memory_backend(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def cli_store(memory_backend):
    """Route every CLI command to a store over the in-memory backend."""
    with patch("s3shelf.cli.main.get_store", side_effect=lambda: ObjectStore(memory_backend)):
        yield ObjectStore(memory_backend)


def preload(store, objects):
    async def upload():
        for key, data in objects.items():
            await store.upload_bytes(key, data)

    asyncio.run(upload())


class TestMainCallback:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_configuration_error(self):
        with patch("s3shelf.cli.main.get_store", side_effect=ValueError("S3 bucket name is required")):
            result = runner.invoke(app, ["ls"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestListCommands:
    def test_ls(self, cli_store):
        preload(cli_store, {"notes/a.json": b"{}", "notes/b.json": b"{}", "other/c": b"x"})

        result = runner.invoke(app, ["ls", "notes/"])

        assert result.exit_code == 0
        assert "notes/a.json" in result.output
        assert "notes/b.json" in result.output
        assert "other/c" not in result.output

    def test_ls_empty(self, cli_store):
        result = runner.invoke(app, ["ls", "nothing/"])

        assert result.exit_code == 0
        assert "No objects" in result.output

    def test_dirs(self, cli_store):
        preload(cli_store, {"notes/2024/a": b"x", "notes/2025/b": b"x", "notes/top": b"x"})

        result = runner.invoke(app, ["dirs", "notes/"])

        assert result.exit_code == 0
        assert result.output.split() == ["notes/2024/", "notes/2025/"]

    def test_recent(self, cli_store):
        preload(cli_store, {"logs/old": b"x", "logs/mid": b"x", "logs/new": b"x"})

        result = runner.invoke(app, ["recent", "logs/", "-n", "2"])

        assert result.exit_code == 0
        assert "logs/new" in result.output
        assert "logs/mid" in result.output
        assert "logs/old" not in result.output
        assert result.output.index("logs/new") < result.output.index("logs/mid")


class TestTransferCommands:
    def test_put_and_get(self, cli_store, memory_backend, tmp_path):
        source = tmp_path / "note.json"
        source.write_text('{"text": "hi"}')

        put = runner.invoke(app, ["put", "notes/n.json", str(source), "-t", "application/json"])
        got = runner.invoke(app, ["get", "notes/n.json"])

        assert put.exit_code == 0
        assert "notes/n.json" in memory_backend
        assert got.exit_code == 0
        assert got.output == '{"text": "hi"}'

    def test_put_existing_without_overwrite(self, cli_store, tmp_path):
        preload(cli_store, {"a.txt": b"old"})
        source = tmp_path / "a.txt"
        source.write_text("new")

        result = runner.invoke(app, ["put", "a.txt", str(source)])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_get_to_file(self, cli_store, tmp_path):
        preload(cli_store, {"blob.bin": b"\x00\x01"})
        target = tmp_path / "out" / "blob.bin"

        result = runner.invoke(app, ["get", "blob.bin", "--out", str(target)])

        assert result.exit_code == 0
        assert target.read_bytes() == b"\x00\x01"

    def test_get_missing(self, cli_store):
        result = runner.invoke(app, ["get", "missing.json"])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestDeleteCommands:
    def test_rm(self, cli_store, memory_backend):
        preload(cli_store, {"a": b"x"})

        result = runner.invoke(app, ["rm", "a"])

        assert result.exit_code == 0
        assert len(memory_backend) == 0

    def test_rm_missing(self, cli_store):
        result = runner.invoke(app, ["rm", "a"])

        assert result.exit_code == 1
        assert "No object" in result.output

    def test_rm_prefix_with_yes(self, cli_store, memory_backend):
        preload(cli_store, {"tmp/1": b"x", "tmp/2": b"x", "keep": b"x"})

        result = runner.invoke(app, ["rm-prefix", "tmp/", "--yes"])

        assert result.exit_code == 0
        assert "Deleted 2" in result.output
        assert memory_backend.keys() == ["keep"]

    def test_rm_prefix_declined(self, cli_store, memory_backend):
        preload(cli_store, {"tmp/1": b"x"})

        result = runner.invoke(app, ["rm-prefix", "tmp/"], input="n\n")

        assert result.exit_code == 1
        assert memory_backend.keys() == ["tmp/1"]

    def test_rm_prefix_refuses_blank(self, cli_store):
        result = runner.invoke(app, ["rm-prefix", " ", "--yes"])

        assert result.exit_code == 1
        assert "Refusing" in result.output

    def test_mv(self, cli_store, memory_backend):
        preload(cli_store, {"old": b"x"})

        result = runner.invoke(app, ["mv", "old", "new"])

        assert result.exit_code == 0
        assert memory_backend.keys() == ["new"]

    def test_mv_missing_source(self, cli_store):
        result = runner.invoke(app, ["mv", "old", "new"])

        assert result.exit_code == 1
        assert "Source object not found" in result.output


class TestServeCommand:
    def test_serve_passes_bindings(self):
        with patch("s3shelf.main.load_bindings", return_value=["binding"]), patch(
            "s3shelf.main.main"
        ) as mock_run:
            result = runner.invoke(app, ["serve", "--port", "9000", "--bindings", "records:BINDINGS"])

        assert result.exit_code == 0
        mock_run.assert_called_once_with(host="0.0.0.0", port=9000, bindings="records:BINDINGS")

    def test_serve_without_bindings_warns(self):
        with patch("s3shelf.main.load_bindings", return_value=[]), patch("s3shelf.main.main"):
            result = runner.invoke(app, ["serve", "--bindings", ""])

        assert result.exit_code == 0
        assert "health endpoints only" in result.output

    def test_serve_rejects_bad_bindings(self):
        with patch("s3shelf.main.main") as mock_run:
            result = runner.invoke(app, ["serve", "--bindings", "not-a-path"])

        assert result.exit_code == 1
        assert "module:attribute" in result.output
        mock_run.assert_not_called()
