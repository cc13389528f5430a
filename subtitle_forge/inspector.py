"""Container inspection via ``mkvmerge -J``."""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from .errors import MalformedMetadataError, ToolInvocationError, UnsupportedContainerError
from .languages import normalize
from .models import ContainerTrack, TrackType

MATROSKA = "matroska"


def _require(mapping: Dict[str, Any], key: str, kind: type, where: str) -> Any:
    if key not in mapping:
        raise MalformedMetadataError(f"{where}: missing '{key}'")
    value = mapping[key]
    # bool is an int subclass; never accept it where a number is expected.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedMetadataError(
            f"{where}: '{key}' must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


def _optional(mapping: Dict[str, Any], key: str, kind: type, default: Any, where: str) -> Any:
    value = mapping.get(key)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedMetadataError(
            f"{where}: '{key}' must be {kind.__name__}, got {type(value).__name__}"
        )
    return value


def decode_track(raw: Any, index: int) -> ContainerTrack:
    """Decode one entry of the ``tracks`` array."""
    where = f"tracks[{index}]"
    if not isinstance(raw, dict):
        raise MalformedMetadataError(f"{where}: expected an object, got {type(raw).__name__}")

    track_id = _require(raw, "id", int, where)
    track_type = _require(raw, "type", str, where)
    codec = _optional(raw, "codec", str, "", where)
    props = _optional(raw, "properties", dict, {}, where)
    where = f"{where}.properties"

    return ContainerTrack(
        id=track_id,
        number=_optional(props, "number", int, track_id + 1, where),
        type=TrackType.parse(track_type),
        codec_id=_optional(props, "codec_id", str, "", where),
        codec=codec,
        language=normalize(_optional(props, "language", str, "", where)),
        name=_optional(props, "track_name", str, "", where),
        forced=_optional(props, "forced_track", bool, False, where),
        default=_optional(props, "default_track", bool, False, where),
    )


def decode_metadata(text: str) -> Tuple[str, List[ContainerTrack]]:
    """Decode ``mkvmerge -J`` output into ``(container_type, tracks)``.

    Unknown fields are ignored; anything that does not fit the expected shape
    raises :class:`MalformedMetadataError`.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedMetadataError(f"mkvmerge output is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise MalformedMetadataError(f"expected a JSON object, got {type(data).__name__}")

    container = _require(data, "container", dict, "root")
    container_type = _optional(container, "type", str, "", "container")
    raw_tracks = _optional(data, "tracks", list, [], "root")

    tracks = [decode_track(raw, index) for index, raw in enumerate(raw_tracks)]
    return container_type, tracks


def inspect_container(
    path: Union[str, Path], mkvmerge: str = "mkvmerge"
) -> Tuple[str, List[ContainerTrack]]:
    """Run ``mkvmerge -J`` on *path* and return ``(container_type, tracks)``.

    Raises:
        ToolInvocationError: mkvmerge is missing or exited non-zero.
        MalformedMetadataError: the JSON does not have the expected shape.
        UnsupportedContainerError: the container is not Matroska.
    """
    cmd = [mkvmerge, "-J", str(path)]
    logging.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, encoding="utf-8", errors="replace", check=True
        )
    except FileNotFoundError as exc:
        raise ToolInvocationError(mkvmerge, f"not found ({exc})", command=cmd) from exc
    except subprocess.CalledProcessError as exc:
        # mkvmerge -J reports its own errors inside the JSON on stdout.
        output = (exc.stdout or "") + (exc.stderr or "")
        raise ToolInvocationError(
            mkvmerge, f"could not read {path}", exc.returncode, output, cmd
        ) from exc

    container_type, tracks = decode_metadata(result.stdout)
    if container_type.strip().lower() != MATROSKA:
        raise UnsupportedContainerError(container_type, path)

    logging.debug(f"{path}: {len(tracks)} track(s) in {container_type} container")
    return container_type, tracks


def subtitle_tracks(tracks: List[ContainerTrack]) -> List[ContainerTrack]:
    return [track for track in tracks if track.is_subtitle]
