"""Deterministic output filenames for extracted subtitle tracks.

Every file of a batch is named ``<container>.track<number>_<language>.<ext>``.
A :class:`NameDeriver` keeps the names it has handed out so two tracks of the
same batch never share a file; the second one gets the track id appended.
"""

import re
from pathlib import Path
from typing import Set, Union

from .models import ContainerTrack

_UNSAFE = re.compile(r'[\\/:*?"<>|\x00-\x1f]+')


def sanitize_component(value: str, fallback: str = "") -> str:
    """Strip path separators and characters that are invalid in filenames."""
    cleaned = _UNSAFE.sub("_", value or "").strip(" .")
    return cleaned or fallback


def container_base_name(container: Union[str, Path]) -> str:
    """``/media/Movie.2020.mkv`` → ``Movie.2020``."""
    return Path(container).stem


def derive_name(container_base: str, track: ContainerTrack, extension: str, suffix: str = "") -> str:
    """Compose the filename for *track*; never touches the filesystem."""
    base = sanitize_component(container_base, "output")
    language = sanitize_component(track.language, "und")
    extension = sanitize_component(extension.lstrip("."), "bin")
    stem = f"{base}.track{track.number}_{language}"
    if suffix:
        stem = f"{stem}_{sanitize_component(suffix)}"
    return f"{stem}.{extension}"


class NameDeriver:
    """Batch-scoped name source that guarantees unique filenames.

    Names are compared case-insensitively so the guarantee also holds on
    case-insensitive filesystems.
    """

    def __init__(self, container_base: str) -> None:
        self.container_base = container_base
        self._taken: Set[str] = set()

    def reserve(self, name: str) -> bool:
        key = name.lower()
        if key in self._taken:
            return False
        self._taken.add(key)
        return True

    def name_for(self, track: ContainerTrack, extension: str) -> str:
        name = derive_name(self.container_base, track, extension)
        if self.reserve(name):
            return name

        name = derive_name(self.container_base, track, extension, suffix=str(track.id))
        counter = 2
        while not self.reserve(name):
            name = derive_name(
                self.container_base, track, extension, suffix=f"{track.id}_{counter}"
            )
            counter += 1
        return name
