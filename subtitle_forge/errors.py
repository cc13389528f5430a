"""Exception taxonomy for container inspection, extraction and conversion.

Container-level errors (:class:`ContainerError`) are fatal to a whole run and
are raised before any task exists.  Task-level errors (:class:`TaskError`) are
caught by the orchestrator at the task boundary and recorded on the task.
"""

from pathlib import Path
from typing import Optional, Sequence, Union

# Diagnostic output kept in memory per failure; the rest lives in the log file.
MAX_OUTPUT_CHARS = 10_000


def truncate_output(
    text: str,
    log_path: Optional[Path] = None,
    limit: int = MAX_OUTPUT_CHARS,
    truncated: bool = False,
) -> str:
    """Cap *text* at *limit* characters, labelling the cut."""
    if not truncated and len(text) <= limit:
        return text
    where = f"full output in {log_path}" if log_path else "full output not kept"
    return f"{text[:limit]}\n... [output truncated at {limit} characters, {where}] ..."


class SubtitleForgeError(Exception):
    """Base class for every error raised by subtitle_forge."""


class _ToolFailure(SubtitleForgeError):
    """An external tool was missing or exited non-zero."""

    def __init__(
        self,
        tool: str,
        message: str,
        exit_code: Optional[int] = None,
        output: str = "",
        command: Optional[Sequence[str]] = None,
    ) -> None:
        self.tool = tool
        self.exit_code = exit_code
        self.output = output
        self.command = list(command) if command else []
        code = f" (exit code {exit_code})" if exit_code is not None else ""
        super().__init__(f"{tool}: {message}{code}")


# ------------------------------------------------------------------
# Container-level
# ------------------------------------------------------------------

class ContainerError(SubtitleForgeError):
    """The container could not be inspected; nothing was extracted."""


class ToolInvocationError(_ToolFailure, ContainerError):
    """mkvmerge was missing or exited non-zero."""


class MalformedMetadataError(ContainerError):
    """mkvmerge output did not decode into the expected shape."""


class UnsupportedContainerError(ContainerError):
    """The file is readable but is not a Matroska container."""

    def __init__(self, container_type: str, path: Union[str, Path, None] = None) -> None:
        self.container_type = container_type
        self.path = path
        where = f" {path}" if path else ""
        super().__init__(
            f"File{where} is not a Matroska container (reported type: {container_type!r})"
        )


# ------------------------------------------------------------------
# Task-level
# ------------------------------------------------------------------

class TaskError(SubtitleForgeError):
    """A single track failed; sibling tracks are unaffected."""

    output: str = ""
    log_path: Optional[Path] = None


class ExtractionToolError(_ToolFailure, TaskError):
    """mkvextract was missing or exited non-zero for one track."""


class ArtifactError(TaskError):
    """The extraction tool did not leave a usable file behind."""

    def __init__(self, path: Path, message: str, output: str = "") -> None:
        self.path = Path(path)
        self.output = output
        super().__init__(f"{message}: {path}")


class MissingArtifactError(ArtifactError):
    def __init__(self, path: Path, output: str = "") -> None:
        super().__init__(path, "Extracted file not found", output)


class EmptyArtifactError(ArtifactError):
    def __init__(self, path: Path, output: str = "") -> None:
        super().__init__(path, "Extracted file is empty (0 bytes)", output)


class ConverterError(TaskError):
    """Base class for conversion driver failures."""

    def __init__(
        self,
        converter: str,
        message: str,
        output: str = "",
        log_path: Optional[Path] = None,
    ) -> None:
        self.converter = converter
        self.output = output
        self.log_path = log_path
        super().__init__(f"{converter}: {message}")


class ConverterNotFoundError(ConverterError):
    """The converter binary or script does not exist."""


class ConverterStartError(ConverterError):
    """The converter process could not be launched."""


class ConverterExitError(ConverterError):
    """The converter exited non-zero (or was killed on timeout)."""

    def __init__(
        self,
        converter: str,
        exit_code: Optional[int],
        output: str = "",
        log_path: Optional[Path] = None,
        promoted: bool = False,
    ) -> None:
        self.exit_code = exit_code
        self.promoted = promoted
        note = "; partial output kept" if promoted else ""
        status = "timed out" if exit_code is None else f"exited with code {exit_code}"
        super().__init__(converter, f"{status}{note}", output, log_path)


class OutputNotProducedError(ConverterError):
    """The converter finished but left no output to promote."""


class FileOperationError(TaskError):
    """A filesystem operation on an intermediate or final file failed."""


class UnexpectedTaskError(TaskError):
    """An error outside the expected failure modes interrupted the task."""


class CancelledError(TaskError):
    """The batch was cancelled before this task started."""


class InvalidTransitionError(SubtitleForgeError):
    """A task state change violated the Pending → ... → Done/Failed order."""
