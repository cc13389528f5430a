"""Shared fixtures: fake external tools and sample tracks."""

import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest
from subtitle_forge.models import ContainerTrack, TrackType

SAMPLE_SRT = "1\n00:00:01,000 --> 00:00:02,500\nHello\n\n2\n00:00:03,000 --> 00:00:04,000\nWorld\n"


@pytest.fixture
def sample_srt() -> str:
    return SAMPLE_SRT


@pytest.fixture
def make_tool(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write an executable Python script standing in for an external tool."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir(exist_ok=True)

    def make(name: str, body: str) -> Path:
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\nimport sys, time\n" + textwrap.dedent(body))
        path.chmod(0o755)
        return path

    return make


@pytest.fixture
def make_track() -> Callable[..., ContainerTrack]:
    """Subtitle track factory; the track number is the id plus one, as mkvmerge reports."""

    def make(track_id: int, codec_id: str, language: str = "eng", **kwargs) -> ContainerTrack:
        return ContainerTrack(
            id=track_id,
            number=track_id + 1,
            type=TrackType.SUBTITLES,
            codec_id=codec_id,
            language=language,
            **kwargs,
        )

    return make
