"""Conversion drivers: OCR for image subtitles, ffmpeg for markup subtitles.

Every driver follows the same sequence:

1. resolve the converter executable (``ConverterNotFoundError`` if absent);
2. run it against a private temporary directory, streaming stdout and stderr
   line by line into ``<output>.conversion.log`` and a :class:`ProgressParser`;
3. once the process has exited, promote the temporary output over the final
   path, even after a non-zero exit, so partial transcripts can be inspected.
"""

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, IO, List, Optional, Tuple, Union

from . import languages
from .errors import (
    MAX_OUTPUT_CHARS,
    ConverterExitError,
    ConverterNotFoundError,
    ConverterStartError,
    OutputNotProducedError,
    truncate_output,
)
from .progress import ProgressParser, ProgressUpdate

ProgressCallback = Callable[[ProgressUpdate], None]


def log_path_for(output_path: Path) -> Path:
    """``Movie.track3_eng.srt`` → ``Movie.track3_eng.conversion.log``."""
    return output_path.with_name(f"{output_path.stem}.conversion.log")


@dataclass
class ConversionResult:
    output_path: Path
    log_path: Path
    exit_code: int
    output: str


class OutputCapture:
    """Keeps at most *limit* characters of diagnostic output in memory."""

    def __init__(self, limit: int = MAX_OUTPUT_CHARS) -> None:
        self.limit = limit
        self.truncated = False
        self._parts: List[str] = []
        self._size = 0
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        with self._lock:
            room = self.limit - self._size
            if room <= 0:
                self.truncated = True
                return
            if len(line) > room:
                line = line[:room]
                self.truncated = True
            self._parts.append(line)
            self._size += len(line)

    def text(self, log_path: Optional[Path] = None) -> str:
        with self._lock:
            text = "".join(self._parts)
            truncated = self.truncated
        return truncate_output(text, log_path, self.limit, truncated)


class _ConversionLog:
    """Serialises writes from both reader threads into the log file."""

    def __init__(self, handle: IO[str]) -> None:
        self._handle = handle
        self._lock = threading.Lock()

    def write(self, text: str) -> None:
        with self._lock:
            self._handle.write(text)
            self._handle.flush()

    def note(self, message: str) -> None:
        self.write(f"{datetime.now().strftime('%Y-%m-%d %H:%M:%S')} {message}\n")


class ConversionDriver:
    """Shared run/stream/promote logic; subclasses supply the command line."""

    name = "converter"
    # True when the converter writes its result to stdout.
    stdout_is_output = False

    def __init__(self, executable: str, timeout: Optional[float] = None) -> None:
        self.executable = executable
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def tool_language(self, language: str) -> str:
        return languages.normalize(language)

    def build_command(
        self, executable: str, input_path: Path, workdir: Path, language: str
    ) -> Tuple[List[str], Path]:
        """Return ``(command, temp_output_path)``."""
        raise NotImplementedError

    def working_directory(self, workdir: Path) -> Path:
        return workdir

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def resolve(self) -> str:
        """Return the executable path, or raise ConverterNotFoundError."""
        candidate = Path(self.executable).expanduser()
        if os.path.dirname(self.executable):
            if candidate.is_file():
                return str(candidate)
        else:
            found = shutil.which(self.executable)
            if found:
                return found
        raise ConverterNotFoundError(self.name, f"{self.executable} not found")

    def convert(
        self,
        input_path: Union[str, Path],
        output_path: Union[str, Path],
        language: str = languages.UNDETERMINED,
        parser: Optional[ProgressParser] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ConversionResult:
        """Convert *input_path* into *output_path*.

        Raises:
            ConverterNotFoundError: converter binary or script is absent.
            ConverterStartError: the process could not be launched.
            ConverterExitError: non-zero exit; partial output is still promoted.
            OutputNotProducedError: clean exit but nothing to promote; an older
                file at *output_path* is reported as stale.
            OSError: the promotion copy failed after a clean exit.
        """
        input_path = Path(input_path)
        output_path = Path(output_path)
        log_path = log_path_for(output_path)
        executable = self.resolve()
        parser = parser or ProgressParser()
        capture = OutputCapture()
        tool_language = self.tool_language(language)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="subtitle_forge_") as tmp, \
                open(log_path, "w", encoding="utf-8") as log_fh:
            workdir = Path(tmp)
            log = _ConversionLog(log_fh)
            cmd, temp_output = self.build_command(executable, input_path, workdir, tool_language)

            log.note(f"=== {self.name} conversion ===")
            log.note(f"Input file: {input_path}")
            log.note(f"Final output file: {output_path}")
            log.note(f"Temporary output file: {temp_output}")
            log.note(f"Language: {language} -> {tool_language}")
            log.note(f"Command: {' '.join(cmd)}")
            logging.debug(f"Running: {' '.join(cmd)}")

            exit_code = self._run(cmd, workdir, temp_output, log, capture, parser, on_progress)
            log.note(f"Command finished with exit code {exit_code}")

            try:
                promoted = self._promote(temp_output, output_path, log)
            except OSError as exc:
                log.note(f"Error: could not copy temporary output to {output_path}: {exc}")
                if exit_code == 0:
                    raise
                raise ConverterExitError(
                    self.name, exit_code, capture.text(log_path), log_path
                ) from exc
            if not promoted and output_path.exists():
                log.note(f"Warning: {output_path} is left over from an earlier run and was not updated")
            output = capture.text(log_path)

        if exit_code != 0:
            raise ConverterExitError(self.name, exit_code, output, log_path, promoted)
        if not promoted:
            message = f"no output produced for {input_path.name}"
            if output_path.exists():
                message += f"; existing {output_path.name} is stale"
            raise OutputNotProducedError(self.name, message, output, log_path)
        return ConversionResult(output_path, log_path, exit_code, output)

    def _run(
        self,
        cmd: List[str],
        workdir: Path,
        temp_output: Path,
        log: _ConversionLog,
        capture: OutputCapture,
        parser: ProgressParser,
        on_progress: Optional[ProgressCallback],
    ) -> Optional[int]:
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                cwd=str(self.working_directory(workdir)),
            )
        except OSError as exc:
            log.note(f"Failed to start command: {exc}")
            raise ConverterStartError(self.name, f"could not start: {exc}") from exc

        def diagnostics(stream: IO[str]) -> None:
            for line in stream:
                log.write(line)
                capture.append(line)
                update = parser.feed(line)
                if update and on_progress:
                    on_progress(update)

        def result_lines(stream: IO[str]) -> None:
            with open(temp_output, "w", encoding="utf-8") as out:
                for line in stream:
                    out.write(line)
                    update = parser.feed(line)
                    if update and on_progress:
                        on_progress(update)

        readers = [
            threading.Thread(
                target=result_lines if self.stdout_is_output else diagnostics,
                args=(proc.stdout,),
                daemon=True,
            ),
            threading.Thread(target=diagnostics, args=(proc.stderr,), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            exit_code: Optional[int] = proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            log.note(f"Timed out after {self.timeout}s, killing process")
            proc.kill()
            proc.wait()
            exit_code = None

        for reader in readers:
            reader.join()
        proc.stdout.close()
        proc.stderr.close()
        return exit_code

    def _promote(self, temp_output: Path, output_path: Path, log: _ConversionLog) -> bool:
        """Copy *temp_output* over *output_path* in one atomic replace."""
        if not temp_output.is_file() or temp_output.stat().st_size == 0:
            log.note(f"Error: temporary output not found or empty: {temp_output}")
            return False

        staging = output_path.with_name(f".{output_path.name}.partial")
        try:
            shutil.copyfile(temp_output, staging)
            os.replace(staging, output_path)
        finally:
            if staging.exists():
                staging.unlink()
        temp_output.unlink()
        log.note(f"Copied temporary output to {output_path}")
        return True


class PgsOcrConverter(ConversionDriver):
    """PGS (``.sup``) to SRT through the pgs-to-srt Deno script and Tesseract.

    ``deno run --allow-read --allow-write pgs-to-srt.js <lang>.traineddata in.sup``
    prints the SRT on stdout and its progress on stderr.
    """

    name = "pgs-to-srt"
    stdout_is_output = True

    def __init__(
        self,
        script: Union[str, Path],
        deno: str = "deno",
        tessdata_dir: Union[str, Path, None] = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(deno, timeout)
        self.script = Path(script).expanduser()
        self.tessdata_dir = (
            Path(tessdata_dir).expanduser() if tessdata_dir else self.script.parent / "tessdata_fast"
        )

    def resolve(self) -> str:
        if not self.script.is_file():
            raise ConverterNotFoundError(self.name, f"script not found at {self.script}")
        return super().resolve()

    def tool_language(self, language: str) -> str:
        return languages.to_tesseract(language)

    def trained_data(self, language: str) -> Path:
        return self.tessdata_dir / f"{language}.traineddata"

    def working_directory(self, workdir: Path) -> Path:
        return self.script.parent

    def build_command(
        self, executable: str, input_path: Path, workdir: Path, language: str
    ) -> Tuple[List[str], Path]:
        trained = self.trained_data(language)
        if not trained.is_file():
            logging.warning(f"Tesseract data not found: {trained}")
        cmd = [
            executable, "run", "--allow-read", "--allow-write",
            str(self.script), str(trained), str(input_path.resolve()),
        ]
        return cmd, workdir / "output.srt"


class VobSubOcrConverter(ConversionDriver):
    """VobSub (``.idx`` + ``.sub``) to SRT with vobsub2srt.

    vobsub2srt takes the base path without extension and writes
    ``<base>.srt`` next to its inputs, so both halves are copied into the
    private working directory first.
    """

    name = "vobsub2srt"

    def __init__(self, vobsub2srt: str = "vobsub2srt", timeout: Optional[float] = None) -> None:
        super().__init__(vobsub2srt, timeout)

    def tool_language(self, language: str) -> str:
        return languages.to_two_letter(language)

    def build_command(
        self, executable: str, input_path: Path, workdir: Path, language: str
    ) -> Tuple[List[str], Path]:
        base = workdir / "input"
        for suffix in (".idx", ".sub"):
            source = input_path.with_suffix(suffix)
            if source.is_file():
                shutil.copyfile(source, base.with_suffix(suffix))
            else:
                logging.warning(f"VobSub companion file missing: {source}")
        return [executable, "--lang", language, str(base)], base.with_suffix(".srt")


class MarkupConverter(ConversionDriver):
    """ASS/SSA to SRT with ``ffmpeg -i in.ass -f srt out.srt``."""

    name = "ffmpeg"

    def __init__(self, ffmpeg: str = "ffmpeg", timeout: Optional[float] = None) -> None:
        super().__init__(ffmpeg, timeout)

    def build_command(
        self, executable: str, input_path: Path, workdir: Path, language: str
    ) -> Tuple[List[str], Path]:
        temp_output = workdir / "output.srt"
        cmd = [
            executable, "-y", "-nostdin", "-i", str(input_path.resolve()),
            "-f", "srt", str(temp_output),
        ]
        return cmd, temp_output
