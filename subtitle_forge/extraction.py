"""Single-track extraction with ``mkvextract``."""

import logging
import os
import subprocess
import time
from pathlib import Path
from typing import List, Union

from .errors import EmptyArtifactError, ExtractionToolError, MissingArtifactError

# rw-r--r--
SUBTITLE_FILE_MODE = 0o644


def extract_command(
    container: Union[str, Path], track_id: int, dest: Union[str, Path], mkvextract: str = "mkvextract"
) -> List[str]:
    return [mkvextract, "tracks", str(container), f"{track_id}:{dest}"]


def verify_artifact(path: Path, output: str = "") -> int:
    """Return the size of *path*, raising if it is absent or empty."""
    try:
        size = path.stat().st_size
    except FileNotFoundError:
        raise MissingArtifactError(path, output) from None
    if size == 0:
        raise EmptyArtifactError(path, output)
    return size


def extract_track(
    container: Union[str, Path],
    track_id: int,
    dest: Union[str, Path],
    mkvextract: str = "mkvextract",
    retries: int = 0,
    set_permissions: bool = False,
) -> str:
    """Extract track *track_id* of *container* to *dest*.

    A zero exit code from mkvextract is not taken as proof: the artifact must
    exist and be non-empty afterwards.  VobSub tracks written to ``.idx`` also
    need their ``.sub`` companion.

    Returns the tool's combined output.

    Raises:
        ExtractionToolError: mkvextract is missing or failed on every attempt.
        MissingArtifactError / EmptyArtifactError: post-condition failed.
    """
    dest = Path(dest)
    dest.parent.mkdir(parents=True, exist_ok=True)
    cmd = extract_command(container, track_id, dest, mkvextract)
    output = ""

    for attempt in range(max(0, retries) + 1):
        logging.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                text=True, encoding="utf-8", errors="replace", check=True,
            )
            output = result.stdout or ""
            break
        except FileNotFoundError as exc:
            raise ExtractionToolError(mkvextract, f"not found ({exc})", command=cmd) from exc
        except subprocess.CalledProcessError as exc:
            output = exc.stdout or ""
            if attempt < retries:
                wait = 0.5 * (attempt + 1)
                logging.warning(
                    f"  Retry {attempt + 1}/{retries} for track {track_id} "
                    f"(waiting {wait:.1f}s): exit code {exc.returncode}"
                )
                time.sleep(wait)
            else:
                raise ExtractionToolError(
                    mkvextract, f"failed to extract track {track_id}", exc.returncode, output, cmd
                ) from exc

    size = verify_artifact(dest, output)
    if dest.suffix.lower() == ".idx":
        verify_artifact(dest.with_suffix(".sub"), output)

    if set_permissions:
        os.chmod(dest, SUBTITLE_FILE_MODE)

    logging.debug(f"  Extracted track {track_id} to {dest} ({size} bytes)")
    return output
