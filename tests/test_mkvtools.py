"""Tests for the MKVToolNix utilities.  subprocess is mocked."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from subtitle_forge.errors import ToolInvocationError
from subtitle_forge.mkvtools import (
    chapters_path,
    check_tool,
    default_insert_output,
    extract_chapters,
    insert_command,
    insert_subtitle,
    mkv_info,
)


def _ok(stdout: str = "") -> MagicMock:
    return MagicMock(stdout=stdout, returncode=0)


class TestCheckTool:
    def test_missing(self) -> None:
        assert check_tool("definitely-not-a-real-tool-name") is False

    def test_present(self) -> None:
        with patch("subtitle_forge.mkvtools.shutil.which", return_value="/usr/bin/mkvmerge"), \
                patch("subtitle_forge.mkvtools.subprocess.run", return_value=_ok()) as run:
            assert check_tool("mkvmerge") is True
        assert run.call_args[0][0] == ["mkvmerge", "--version"]

    def test_failing_version(self) -> None:
        with patch("subtitle_forge.mkvtools.shutil.which", return_value="/usr/bin/mkvmerge"), \
                patch("subtitle_forge.mkvtools.subprocess.run",
                      side_effect=subprocess.CalledProcessError(1, ["mkvmerge"])):
            assert check_tool("mkvmerge") is False


class TestMkvInfo:
    def test_returns_output(self) -> None:
        with patch("subtitle_forge.mkvtools.subprocess.run", return_value=_ok("+ EBML head\n")) as run:
            assert mkv_info("Movie.mkv") == "+ EBML head\n"
        assert run.call_args[0][0] == ["mkvinfo", "Movie.mkv"]

    def test_failure(self) -> None:
        error = subprocess.CalledProcessError(2, ["mkvinfo"], output="Error: not a Matroska file")
        with patch("subtitle_forge.mkvtools.subprocess.run", side_effect=error):
            with pytest.raises(ToolInvocationError) as exc_info:
                mkv_info("Movie.mkv")
        assert "not a Matroska file" in exc_info.value.output

    def test_tool_missing(self) -> None:
        with patch("subtitle_forge.mkvtools.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(ToolInvocationError, match="not found"):
                mkv_info("Movie.mkv")


class TestExtractChapters:
    def test_default_path(self, tmp_path: Path) -> None:
        mkv = tmp_path / "Movie.mkv"
        assert chapters_path(mkv) == tmp_path / "Movie_chapters.txt"

    def test_command(self, tmp_path: Path) -> None:
        mkv = tmp_path / "Movie.mkv"

        def run(cmd, **kwargs):
            Path(cmd[-1]).write_text("<Chapters/>")
            return _ok()

        with patch("subtitle_forge.mkvtools.subprocess.run", side_effect=run) as mock_run:
            output = extract_chapters(mkv)
        assert mock_run.call_args[0][0] == ["mkvextract", str(mkv), "chapters", str(output)]
        assert output.read_text() == "<Chapters/>"


class TestInsert:
    def test_default_output_name(self) -> None:
        assert default_insert_output(Path("/m/Movie.mkv")) == Path("/m/Movie_with_subtitles.mkv")
        assert default_insert_output(Path("/m/Movie.mkv"), "custom") == Path("/m/custom.mkv")
        assert default_insert_output(Path("/m/Movie.mkv"), "custom.MKV") == Path("/m/custom.MKV")

    def test_command_minimal(self) -> None:
        cmd = insert_command("Movie.mkv", "fr.srt", "out.mkv", language="fre")
        assert cmd == [
            "mkvmerge", "-o", "out.mkv", "Movie.mkv",
            "--language", "0:fre", "--track-name", "0:French", "fr.srt",
        ]

    def test_command_all_flags(self) -> None:
        cmd = insert_command(
            "Movie.mkv", "fr.srt", "out.mkv", language="fre", track_name="Forced FR",
            default=True, forced=True, remove_other_subs=True,
        )
        assert cmd == [
            "mkvmerge", "-o", "out.mkv", "--no-subtitles", "Movie.mkv",
            "--language", "0:fre", "--track-name", "0:Forced FR",
            "--default-track", "0:yes", "--forced-track", "0:yes", "fr.srt",
        ]

    def test_insert_runs_mkvmerge(self, tmp_path: Path) -> None:
        mkv = tmp_path / "Movie.mkv"
        with patch("subtitle_forge.mkvtools.subprocess.run", return_value=_ok()) as run:
            output = insert_subtitle(mkv, tmp_path / "fr.srt", language="fre")
        assert output == tmp_path / "Movie_with_subtitles.mkv"
        assert run.call_args[0][0][:3] == ["mkvmerge", "-o", str(output)]

    def test_refuses_to_overwrite_source(self, tmp_path: Path) -> None:
        mkv = tmp_path / "Movie.mkv"
        with pytest.raises(ValueError):
            insert_subtitle(mkv, tmp_path / "fr.srt", output=mkv)
