#!/usr/bin/env python3
import os
import struct
import tempfile

import pytest

import tattoo
import tattoo_core


class TestCLI:
    def test_no_arguments_prints_usage(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert tattoo.main([]) == 1
        out = capsys.readouterr().out
        assert out.startswith("usage: tattoo")

    def test_too_many_arguments(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert tattoo.main(["a.png", "b.png"]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_separator_counts_as_an_argument(self, capsys: pytest.CaptureFixture[str],
                                             monkeypatch: pytest.MonkeyPatch) -> None:
        rendered: list[str] = []
        monkeypatch.setattr(tattoo_core, "render_png", rendered.append)
        assert tattoo.main(["--", "o.png"]) == 1
        assert rendered == []
        assert "usage:" in capsys.readouterr().out

    def test_dash_prefixed_path_is_rendered(self, monkeypatch: pytest.MonkeyPatch) -> None:
        rendered: list[str] = []
        monkeypatch.setattr(tattoo_core, "render_png", rendered.append)
        assert tattoo.main(["-out.png"]) == 0
        assert rendered == ["-out.png"]

    def test_render_writes_png(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "tattoo.png")
            assert tattoo.main([out]) == 0
            with open(out, "rb") as f:
                header = f.read(24)
            assert header[:8] == b"\x89PNG\r\n\x1a\n"
            width, height = struct.unpack(">II", header[16:24])
            assert (width, height) == (tattoo_core.WIDTH, tattoo_core.HEIGHT)

    def test_file_error_returns_error_code(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def fail(path: str) -> None:
            raise PermissionError(path)

        monkeypatch.setattr(tattoo_core, "render_png", fail)
        assert tattoo.main(["out.png"]) == 2

    def test_invariant_violation_propagates(self, monkeypatch: pytest.MonkeyPatch) -> None:
        broken = tattoo_core.make_branch(400, 300, numbers=[1])
        monkeypatch.setattr(tattoo_core, "build_illustration", lambda: broken)
        with tempfile.TemporaryDirectory() as tmpdir:
            out = os.path.join(tmpdir, "tattoo.png")
            with pytest.raises(AssertionError):
                tattoo.main([out])
            assert not os.path.exists(out)
