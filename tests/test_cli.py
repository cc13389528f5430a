"""Tests for the subtitle-forge and subtitle-forge-tools entry points.

Tool checks, inspection and extraction are patched; nothing external runs.
"""

import json
import logging
from pathlib import Path
from typing import Callable, List
from unittest.mock import patch

import pytest
from subtitle_forge.cli import main, setup_logging, tools_main
from subtitle_forge.errors import EmptyArtifactError, ToolInvocationError, UnsupportedContainerError
from subtitle_forge.models import ContainerTrack, TrackType


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """No real config file, and tool checks always pass."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("subtitle_forge.cli.check_tool", lambda *args: True)


@pytest.fixture
def mkv(tmp_path: Path) -> Path:
    path = tmp_path / "Movie.mkv"
    path.write_bytes(b"\x1a\x45\xdf\xa3")
    return path


@pytest.fixture
def tracks() -> List[ContainerTrack]:
    return [
        ContainerTrack(0, 1, TrackType.VIDEO, "V_MPEG4/ISO/AVC"),
        ContainerTrack(2, 3, TrackType.SUBTITLES, "S_TEXT/UTF8", "SubRip/SRT", "eng", "English"),
        ContainerTrack(3, 4, TrackType.SUBTITLES, "S_TEXT/UTF8", "SubRip/SRT", "fre"),
    ]


def _extract_writing(content: bytes, fail_ids=()) -> Callable:
    def extract(container, track_id, dest, **kwargs) -> str:
        if track_id in fail_ids:
            raise EmptyArtifactError(Path(dest), "mkvextract: 0 bytes")
        Path(dest).parent.mkdir(parents=True, exist_ok=True)
        Path(dest).write_bytes(content)
        return ""
    return extract


class TestSetupLogging:
    def test_file_handler_format(self, tmp_path: Path) -> None:
        log_file = tmp_path / "run.log"
        setup_logging(verbosity=1, log_file=log_file)
        logging.debug("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert logging.getLogger().level == logging.DEBUG
        assert " - DEBUG - hello from the test" in log_file.read_text()


class TestMainValidation:
    def test_extract_is_required(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 2
        assert "--extract" in capsys.readouterr().err

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["-x", str(tmp_path / "nope.mkv")])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_not_mkv(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        mp4 = tmp_path / "Movie.mp4"
        mp4.write_bytes(b"\x00")
        with pytest.raises(SystemExit) as exc_info:
            main(["-x", str(mp4)])
        assert exc_info.value.code == 1
        assert "not an MKV file" in capsys.readouterr().err

    def test_scenario_b_unsupported_container(self, mkv: Path, capsys: pytest.CaptureFixture) -> None:
        with patch("subtitle_forge.cli.inspect_container",
                   side_effect=UnsupportedContainerError("webm", mkv)), \
                patch("subtitle_forge.cli.BatchOrchestrator") as orchestrator:
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv)])
        assert exc_info.value.code == 1
        assert "not a Matroska container" in capsys.readouterr().err
        orchestrator.assert_not_called()

    def test_inspection_tool_failure(self, mkv: Path, capsys: pytest.CaptureFixture) -> None:
        error = ToolInvocationError("mkvmerge", "could not read", 2, "Error: truncated file")
        with patch("subtitle_forge.cli.inspect_container", side_effect=error):
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv)])
        assert exc_info.value.code == 1
        assert "truncated file" in capsys.readouterr().err

    def test_required_tools_missing(
        self, mkv: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture
    ) -> None:
        monkeypatch.setattr("subtitle_forge.cli.check_tool", lambda *args: False)
        with pytest.raises(SystemExit) as exc_info:
            main(["-x", str(mkv)])
        assert exc_info.value.code == 1
        assert "mkvtoolnix" in capsys.readouterr().err

    def test_unknown_track_selection(
        self, mkv: Path, tracks: List[ContainerTrack], capsys: pytest.CaptureFixture
    ) -> None:
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)):
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv), "--tracks", "0"])
        assert exc_info.value.code == 1
        assert "Not subtitle track" in capsys.readouterr().err


class TestMainRun:
    def test_list_tracks(
        self, mkv: Path, tracks: List[ContainerTrack],
        monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture,
    ) -> None:
        monkeypatch.setenv("COLUMNS", "200")
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track") as extract:
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv), "--list-tracks"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "Movie.track3_eng.srt" in out
        assert "S_TEXT/UTF8" in out
        extract.assert_not_called()

    def test_extracts_all_tracks(self, mkv: Path, tracks: List[ContainerTrack], tmp_path: Path) -> None:
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track", side_effect=_extract_writing(b"1\n")):
            main(["-x", str(mkv), "-q"])
        assert (tmp_path / "Movie.track3_eng.srt").exists()
        assert (tmp_path / "Movie.track4_fre.srt").exists()

    def test_rich_display(self, mkv: Path, tracks: List[ContainerTrack], tmp_path: Path) -> None:
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track", side_effect=_extract_writing(b"1\n")):
            main(["-x", str(mkv), "--output-dir", str(tmp_path / "subs")])
        assert sorted(p.name for p in (tmp_path / "subs").iterdir()) == [
            "Movie.track3_eng.srt", "Movie.track4_fre.srt",
        ]

    def test_selected_tracks_and_report(self, mkv: Path, tracks: List[ContainerTrack], tmp_path: Path) -> None:
        out_dir = tmp_path / "subs"
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track", side_effect=_extract_writing(b"1\n")):
            main(["-x", str(mkv), "--tracks", "3", "--output-dir", str(out_dir),
                  "--report-format", "json", "--log-file", str(tmp_path / "run.log")])
        assert (out_dir / "Movie.track4_fre.srt").exists()
        assert not (out_dir / "Movie.track3_eng.srt").exists()
        reports = list(out_dir.glob("subtitle_forge_*.json"))
        assert len(reports) == 1
        assert json.loads(reports[0].read_text())["stats"]["succeeded"] == 1
        assert "SUMMARY" in (tmp_path / "run.log").read_text()

    def test_task_failure_keeps_exit_zero(
        self, mkv: Path, tracks: List[ContainerTrack], tmp_path: Path, capsys: pytest.CaptureFixture
    ) -> None:
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track",
                      side_effect=_extract_writing(b"1\n", fail_ids={2})):
            main(["-x", str(mkv), "-q"])
        assert (tmp_path / "Movie.track4_fre.srt").exists()
        assert "EmptyArtifactError" in capsys.readouterr().err

    def test_strict_exits_2_on_failure(self, mkv: Path, tracks: List[ContainerTrack]) -> None:
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", tracks)), \
                patch("subtitle_forge.orchestrator.extract_track",
                      side_effect=_extract_writing(b"1\n", fail_ids={2})):
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv), "-q", "--strict"])
        assert exc_info.value.code == 2

    def test_no_subtitle_tracks(self, mkv: Path, capsys: pytest.CaptureFixture) -> None:
        video_only = [ContainerTrack(0, 1, TrackType.VIDEO, "V_MPEG4/ISO/AVC")]
        with patch("subtitle_forge.cli.inspect_container", return_value=("Matroska", video_only)):
            with pytest.raises(SystemExit) as exc_info:
                main(["-x", str(mkv)])
        assert exc_info.value.code == 0
        assert "No subtitle tracks" in capsys.readouterr().err


class TestToolsMain:
    def test_shift(self, tmp_path: Path, sample_srt: str) -> None:
        srt = tmp_path / "a.srt"
        srt.write_text(sample_srt)
        tools_main(["shift", str(srt), "-1.5"])
        assert "00:00:00,000 --> 00:00:01,000" in srt.read_text()
        assert (tmp_path / "a.srt.bak").read_text() == sample_srt

    def test_fix_encoding(self, tmp_path: Path) -> None:
        srt = tmp_path / "a.srt"
        srt.write_bytes("Ça va\n".encode("iso-8859-1"))
        tools_main(["fix-encoding", str(srt)])
        assert srt.read_text(encoding="utf-8") == "Ça va\n"

    def test_info(self, mkv: Path, capsys: pytest.CaptureFixture) -> None:
        with patch("subtitle_forge.cli.mkv_info", return_value="+ EBML head") as info:
            tools_main(["info", str(mkv)])
        info.assert_called_once_with(mkv, "mkvinfo")
        assert "+ EBML head" in capsys.readouterr().out

    def test_insert(self, mkv: Path, tmp_path: Path) -> None:
        srt = tmp_path / "fr.srt"
        srt.write_text("1\n")
        with patch("subtitle_forge.cli.insert_subtitle") as insert:
            tools_main(["insert", str(mkv), str(srt), "--language", "fre", "--forced", "--no-default"])
        kwargs = insert.call_args.kwargs
        assert kwargs["output"] == tmp_path / "Movie_with_subtitles.mkv"
        assert kwargs["language"] == "fre"
        assert kwargs["forced"] is True
        assert kwargs["default"] is False

    def test_missing_input(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            tools_main(["chapters", str(tmp_path / "nope.mkv")])
        assert exc_info.value.code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_tool_error_exits_1(self, mkv: Path, capsys: pytest.CaptureFixture) -> None:
        error = ToolInvocationError("mkvextract", "command failed", 2, "no chapters here")
        with patch("subtitle_forge.cli.extract_chapters", side_effect=error):
            with pytest.raises(SystemExit) as exc_info:
                tools_main(["chapters", str(mkv)])
        assert exc_info.value.code == 1
        assert "no chapters here" in capsys.readouterr().err
