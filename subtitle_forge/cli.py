"""Command-line interface for subtitle-forge."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .classifier import CodecFamily, codec_family
from .config import ForgeConfig, load_config
from .conversion import PgsOcrConverter
from .display import ProgressDisplay, display_track_list
from .errors import ContainerError, ConverterNotFoundError, SubtitleForgeError
from .events import QueueSink
from .inspector import inspect_container
from .mkvtools import (
    check_tool,
    default_insert_output,
    extract_chapters,
    insert_subtitle,
    mkv_info,
)
from .models import BatchRun
from .orchestrator import BatchOrchestrator
from .report import print_summary, write_report
from .srt import fix_srt_encoding, shift_srt_file
from .utils import language_code, non_negative_int

EXIT_TASK_FAILURES = 2


# ------------------------------------------------------------------
# Logging setup (single, authoritative call)
# ------------------------------------------------------------------

def setup_logging(verbosity: int = 0, log_file: Optional[Path] = None) -> None:
    """Configure the root logger.

    Args:
        verbosity: -1 = WARNING only, 0 = INFO (default), 1 = DEBUG.
        log_file:  Optional path; when given, output goes to both file and stderr.
    """
    level = {-1: logging.WARNING, 0: logging.INFO, 1: logging.DEBUG}.get(
        verbosity, logging.INFO
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = "%(asctime)s - %(levelname)s - %(message)s" if log_file else "%(message)s"
    formatter = logging.Formatter(fmt)

    if log_file:
        fh = logging.FileHandler(log_file)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    root.addHandler(ch)


def _add_verbosity(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--log-file", type=Path,
                        help="Save log output to a file (in addition to stderr)")
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument("-v", "--verbose", action="store_true",
                                 help="Enable debug-level output")
    verbosity_group.add_argument("-q", "--quiet", action="store_true",
                                 help="Suppress informational messages (warnings and errors only)")


def _verbosity(args: argparse.Namespace) -> int:
    return 1 if args.verbose else (-1 if args.quiet else 0)


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _merge_settings(config: dict, args: argparse.Namespace) -> ForgeConfig:
    """Overlay command-line flags on the config file values."""
    settings = dict(config)
    if args.output_dir:
        settings["output_dir"] = str(args.output_dir)
    if args.convert:
        settings["convert"] = True
    if args.ocr_language:
        settings["ocr_language"] = args.ocr_language
    if args.retries is not None:
        settings["retries"] = args.retries
    if args.report_format:
        settings["report_format"] = args.report_format
    return ForgeConfig.from_dict(settings)


def _check_required_tools(config: ForgeConfig) -> None:
    missing = [tool for tool in (config.mkvmerge, config.mkvextract) if not check_tool(tool)]
    if not missing:
        return
    print(f"Error: required tool(s) not found: {', '.join(missing)}", file=sys.stderr)
    print("\nInstall mkvtoolnix:", file=sys.stderr)
    print("  Ubuntu/Debian: sudo apt-get install mkvtoolnix", file=sys.stderr)
    print("  macOS:         brew install mkvtoolnix", file=sys.stderr)
    sys.exit(1)


def _warn_missing_converters(run: BatchRun, config: ForgeConfig) -> None:
    """Warn up front about converters the planned tasks will need but lack."""
    families = {codec_family(task.track) for task in run.tasks if task.needs_conversion}
    if CodecFamily.PGS in families:
        try:
            PgsOcrConverter(config.pgs_script, config.deno, config.tessdata_dir).resolve()
        except ConverterNotFoundError as exc:
            print(
                f"Warning: {exc}; PGS tracks cannot be OCR'd.\n"
                "Install Deno and the pgs-to-srt script, or set 'pgs_script' in the config.",
                file=sys.stderr,
            )
    if CodecFamily.VOBSUB in families and not check_tool(config.vobsub2srt, "--help"):
        print(
            "Warning: vobsub2srt not found; VobSub tracks cannot be OCR'd.",
            file=sys.stderr,
        )
    if CodecFamily.MARKUP in families and not check_tool(config.ffmpeg, "-version"):
        print(
            "Warning: ffmpeg not found; ASS/SSA tracks cannot be converted.\n"
            "  Ubuntu/Debian: sudo apt-get install ffmpeg\n"
            "  macOS:         brew install ffmpeg",
            file=sys.stderr,
        )


def _follow(orchestrator: BatchOrchestrator, sink: QueueSink, run: BatchRun, use_rich: bool) -> None:
    """Start the worker and render its events on this thread until it is done."""
    worker = orchestrator.run_in_background(run)
    with ProgressDisplay(run, use_rich) as display:
        while True:
            try:
                for event in sink.drain(timeout=0.1):
                    display.handle(event)
                if not worker.is_alive() and sink.updates.empty():
                    break
            except KeyboardInterrupt:
                logging.warning("Interrupted: finishing the current track, skipping the rest")
                orchestrator.cancel()
    worker.join()


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> None:
    """Parse arguments, inspect the container, and run the extraction batch."""
    parser = argparse.ArgumentParser(
        description="Extract (and optionally convert to SRT) the subtitle tracks of an MKV file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s -x movie.mkv
  %(prog)s -x movie.mkv --list-tracks
  %(prog)s -x movie.mkv --tracks 3 5 --output-dir subs
  %(prog)s -x movie.mkv --convert --ocr-language fre
  %(prog)s -x movie.mkv --convert --report-format json --strict

Config file: create ~/.subtitle-forge.yaml with default settings.
        """,
    )

    parser.add_argument("-x", "--extract", type=Path, required=True, metavar="FILE",
                        help="MKV file to extract subtitles from")

    # ---- selection ----
    parser.add_argument("--tracks", type=int, nargs="+", metavar="ID",
                        help="Track ids to extract, in this order (default: every subtitle track)")
    parser.add_argument("--list-tracks", action="store_true",
                        help="List subtitle tracks and planned outputs without extracting")

    # ---- behaviour ----
    parser.add_argument("--output-dir", type=Path,
                        help="Write subtitles to this directory (default: next to the MKV)")
    parser.add_argument("--convert", action="store_true",
                        help="Convert image (OCR) and ASS/SSA subtitles to SRT")
    parser.add_argument("--ocr-language", type=language_code, metavar="CODE",
                        help="OCR language for every track (default: each track's language)")
    parser.add_argument("--retries", type=non_negative_int, metavar="N",
                        help="Retry failed extractions up to N times (default: 0)")
    parser.add_argument("--strict", action="store_true",
                        help=f"Exit with status {EXIT_TASK_FAILURES} when any track fails")

    # ---- output / reporting ----
    parser.add_argument("--report-format", choices=["json", "csv"],
                        help="Write a batch report in the given format")
    _add_verbosity(parser)

    args = parser.parse_args(argv)

    verbosity = _verbosity(args)
    setup_logging(verbosity=verbosity, log_file=args.log_file)

    # ------------------------------------------------------------------
    # Input file
    # ------------------------------------------------------------------
    container: Path = args.extract
    if not container.is_file():
        print(f"Error: file does not exist: {container}", file=sys.stderr)
        sys.exit(1)
    if container.suffix.lower() != ".mkv":
        print(f"Error: not an MKV file: {container}", file=sys.stderr)
        sys.exit(1)

    config = _merge_settings(load_config(), args)
    _check_required_tools(config)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------
    try:
        _, tracks = inspect_container(container, config.mkvmerge)
    except ContainerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if getattr(exc, "output", ""):
            print(exc.output, file=sys.stderr)
        sys.exit(1)

    sink = QueueSink()
    orchestrator = BatchOrchestrator(config, sink)
    try:
        run = orchestrator.plan(container, tracks, selection=args.tracks)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.list_tracks:
        logging.info("=== TRACK INSPECTION MODE ===\n")
        display_track_list(str(container), tracks, run)
        sys.exit(0)

    if not run.tasks:
        logging.info(f"No subtitle tracks found in {container}")
        sys.exit(0)

    _warn_missing_converters(run, config)

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------
    logging.info(f"Extracting {run.total} subtitle track(s) from {container.name}\n")
    use_rich = not args.log_file and verbosity >= 0
    _follow(orchestrator, sink, run, use_rich)

    print_summary(run)
    if config.report_format:
        write_report(run, config.report_format, config.output_dir or container.parent)

    if args.strict and run.failed:
        sys.exit(EXIT_TASK_FAILURES)


# ------------------------------------------------------------------
# Utilities entry point
# ------------------------------------------------------------------

def tools_main(argv: Optional[List[str]] = None) -> None:
    """MKV and SRT utilities: info, chapters, shift, fix-encoding, insert."""
    parser = argparse.ArgumentParser(
        description="MKV and SRT utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s info movie.mkv
  %(prog)s chapters movie.mkv
  %(prog)s shift movie.track3_eng.srt -1.5
  %(prog)s fix-encoding movie.track3_eng.srt
  %(prog)s insert movie.mkv movie.fr.srt --language fre --default
        """,
    )
    _add_verbosity(parser)
    commands = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")

    info = commands.add_parser("info", help="Print mkvinfo output for an MKV file")
    info.add_argument("file", type=Path)

    chapters = commands.add_parser("chapters", help="Extract chapters to <base>_chapters.txt")
    chapters.add_argument("file", type=Path)
    chapters.add_argument("--output", type=Path, help="Chapter file to write")

    shift = commands.add_parser("shift", help="Shift SRT timings (a .bak backup is kept)")
    shift.add_argument("file", type=Path)
    shift.add_argument("offset", type=float, help="Seconds, e.g. 1.5 or -2.3")

    encoding = commands.add_parser(
        "fix-encoding", help="Re-encode an SRT from ISO-8859-1 to UTF-8 (a .bak backup is kept)"
    )
    encoding.add_argument("file", type=Path)

    insert = commands.add_parser("insert", help="Mux an SRT file into a copy of an MKV file")
    insert.add_argument("mkv", type=Path)
    insert.add_argument("srt", type=Path)
    insert.add_argument("--language", type=language_code, default="und",
                        help="Language of the new track (default: und)")
    insert.add_argument("--track-name", help="Track name (default: the language name)")
    insert.add_argument("--default", dest="default", action="store_true", default=True,
                        help="Mark the new track as default (default)")
    insert.add_argument("--no-default", dest="default", action="store_false",
                        help="Do not mark the new track as default")
    insert.add_argument("--forced", action="store_true", help="Mark the new track as forced")
    insert.add_argument("--remove-other-subs", action="store_true",
                        help="Drop every existing subtitle track from the copy")
    insert.add_argument("--output", help="Output file name (default: <base>_with_subtitles.mkv)")

    args = parser.parse_args(argv)
    setup_logging(verbosity=_verbosity(args), log_file=args.log_file)

    paths = [args.mkv, args.srt] if args.command == "insert" else [args.file]
    for path in paths:
        if not path.is_file():
            print(f"Error: file does not exist: {path}", file=sys.stderr)
            sys.exit(1)

    config = ForgeConfig.from_dict(load_config())
    try:
        if args.command == "info":
            print(mkv_info(args.file, config.mkvinfo))
        elif args.command == "chapters":
            output = extract_chapters(args.file, args.output, config.mkvextract)
            logging.info(f"Chapters written to: {output}")
        elif args.command == "shift":
            shift_srt_file(args.file, args.offset)
        elif args.command == "fix-encoding":
            fix_srt_encoding(args.file)
        elif args.command == "insert":
            insert_subtitle(
                args.mkv, args.srt,
                output=default_insert_output(args.mkv, args.output),
                language=args.language,
                track_name=args.track_name,
                default=args.default,
                forced=args.forced,
                remove_other_subs=args.remove_other_subs,
                mkvmerge=config.mkvmerge,
            )
    except (SubtitleForgeError, OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        output = getattr(exc, "output", "")
        if output:
            print(output, file=sys.stderr)
        sys.exit(1)
