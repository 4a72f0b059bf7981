"""Tests for the descriptor inspection CLI (chatmedia.cli.inspect)."""

from __future__ import annotations

import io
import json
from unittest.mock import AsyncMock, patch

import pytest

from chatmedia.cli.inspect import _build_parser, _prepare_all, _resolve_descriptors, main


@pytest.fixture()
def parser():
    return _build_parser()


class TestBuildParser:
    def test_positional(self, parser):
        args = parser.parse_args(["a", "b"])
        assert args.descriptors == ["a", "b"]
        assert args.kind is None
        assert args.json is False
        assert args.fetch is False

    def test_flags(self, parser):
        args = parser.parse_args(["--kind", "audio", "--instance", "sales", "--json", "--fetch", "x"])
        assert args.kind == "audio"
        assert args.instance == "sales"
        assert args.json is True
        assert args.fetch is True

    def test_unknown_kind_rejected(self, parser):
        with pytest.raises(SystemExit):
            parser.parse_args(["--kind", "hologram", "x"])


class TestResolveDescriptors:
    def test_from_args(self, parser):
        assert _resolve_descriptors(parser.parse_args(["a", "b"])) == ["a", "b"]

    def test_from_stdin(self, parser, monkeypatch):
        monkeypatch.setattr("sys.stdin", io.StringIO("first\n\n  second  \n"))
        assert _resolve_descriptors(parser.parse_args(["-"])) == ["first", "second"]

    def test_none_provided(self, parser):
        with pytest.raises(SystemExit):
            _resolve_descriptors(parser.parse_args([]))


class TestPrepareAll:
    def test_kind_hint_and_settings_hosts(self, parser, env_path):
        from chatmedia.runtime.config import settings as settings_module

        env_path.write_text("SECONDARY_STORE_MARKERS=store.example\n")
        settings_module.cfg.reload()
        args = parser.parse_args(["--kind", "video", "https://store.example/b/abc.ogg"])
        (view,) = _prepare_all(args, args.descriptors)
        assert view.kind.value == "video"
        assert view.resolution.object_name == "abc.ogg"


class TestMain:
    def test_json_output(self, monkeypatch, capsys):
        monkeypatch.setattr(
            "sys.argv",
            ["chatmedia-inspect", "--json", "--instance", "sales", "https://mmg.whatsapp.net/v/t62/abc.enc"],
        )
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0
        row = json.loads(capsys.readouterr().out.strip())
        assert row["transport"] == "encrypted-relay-source"
        assert row["kind"] == "image"
        assert "instance=sales" in row["relay_url"]

    def test_table_output(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.argv", ["chatmedia-inspect", "https://example.com/file.xyz"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "document" in out
        assert "generic-http" in out

    def test_fetch_failure_exit_code(self, monkeypatch, capsys):
        fetched = [{"status": "error-with-retry-hint", "reason": "x", "attempts": []}]
        monkeypatch.setattr("sys.argv", ["chatmedia-inspect", "--json", "--fetch", "https://example.com/a.png"])
        with patch("chatmedia.cli.inspect._fetch_all", new=AsyncMock(return_value=fetched)):
            with pytest.raises(SystemExit) as exc:
                main()
        assert exc.value.code == 1
        row = json.loads(capsys.readouterr().out.strip())
        assert row["delivery"]["status"] == "error-with-retry-hint"
