"""Whole-container MKVToolNix utilities: info, chapters, subtitle muxing."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from . import languages
from .errors import ToolInvocationError

PathLike = Union[str, Path]


def check_tool(executable: str, version_flag: str = "--version") -> bool:
    """Return True if *executable* runs and exits cleanly."""
    if shutil.which(executable) is None and not Path(executable).expanduser().is_file():
        return False
    try:
        subprocess.run([executable, version_flag], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, OSError):
        return False


def _run(tool: str, cmd: List[str]) -> str:
    logging.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
            text=True, encoding="utf-8", errors="replace", check=True,
        )
    except FileNotFoundError:
        raise ToolInvocationError(tool, f"{cmd[0]} not found", command=cmd) from None
    except subprocess.CalledProcessError as exc:
        raise ToolInvocationError(
            tool, "command failed", exc.returncode, exc.stdout or "", cmd
        ) from exc
    return result.stdout


def mkv_info(path: PathLike, mkvinfo: str = "mkvinfo") -> str:
    """Return the ``mkvinfo`` dump of *path*."""
    return _run("mkvinfo", [mkvinfo, str(path)])


def chapters_path(path: PathLike) -> Path:
    path = Path(path)
    return path.with_name(f"{path.stem}_chapters.txt")


def extract_chapters(
    path: PathLike, output: Optional[PathLike] = None, mkvextract: str = "mkvextract"
) -> Path:
    """Write the chapter list of *path* to ``<base>_chapters.txt``."""
    output = Path(output) if output else chapters_path(path)
    _run("mkvextract", [mkvextract, str(path), "chapters", str(output)])
    if not output.is_file() or output.stat().st_size == 0:
        logging.warning(f"No chapters written for {Path(path).name}")
    return output


def default_insert_output(path: PathLike, name: Optional[str] = None) -> Path:
    path = Path(path)
    if not name:
        return path.with_name(f"{path.stem}_with_subtitles.mkv")
    if not name.lower().endswith(".mkv"):
        name += ".mkv"
    return path.with_name(name)


def insert_command(
    mkv: PathLike,
    srt: PathLike,
    output: PathLike,
    language: str = languages.UNDETERMINED,
    track_name: Optional[str] = None,
    default: bool = False,
    forced: bool = False,
    remove_other_subs: bool = False,
    mkvmerge: str = "mkvmerge",
) -> List[str]:
    language = languages.normalize(language)
    cmd = [mkvmerge, "-o", str(output)]
    if remove_other_subs:
        cmd.append("--no-subtitles")
    cmd += [
        str(mkv),
        "--language", f"0:{language}",
        "--track-name", f"0:{track_name or languages.display_name(language)}",
    ]
    if default:
        cmd += ["--default-track", "0:yes"]
    if forced:
        cmd += ["--forced-track", "0:yes"]
    cmd.append(str(srt))
    return cmd


def insert_subtitle(
    mkv: PathLike,
    srt: PathLike,
    output: Optional[PathLike] = None,
    language: str = languages.UNDETERMINED,
    track_name: Optional[str] = None,
    default: bool = False,
    forced: bool = False,
    remove_other_subs: bool = False,
    mkvmerge: str = "mkvmerge",
) -> Path:
    """Mux *srt* into a copy of *mkv* and return the new file's path.

    The source container is never modified; by default the result is
    ``<base>_with_subtitles.mkv`` next to it.
    """
    output = Path(output) if output else default_insert_output(mkv)
    if output.resolve() == Path(mkv).resolve():
        raise ValueError(f"Output would overwrite the source container: {output}")
    cmd = insert_command(
        mkv, srt, output, language, track_name, default, forced, remove_other_subs, mkvmerge
    )
    if remove_other_subs:
        logging.info("Removing all existing subtitle tracks")
    _run("mkvmerge", cmd)
    logging.info(f"Subtitle added: {output}")
    return output
