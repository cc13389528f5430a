"""End-of-run summary and JSON/CSV batch reports."""

import csv
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from .errors import truncate_output
from .models import BatchRun, ExtractionTask
from .progress import format_duration

REPORT_PREFIX = "subtitle_forge"

CSV_FIELDS = [
    "Track ID", "Track Number", "Language", "Codec", "Strategy",
    "State", "Output", "Error Kind", "Error",
]


def task_record(task: ExtractionTask) -> Dict:
    track = task.track
    return {
        "track_id": track.id,
        "track_number": track.number,
        "language": track.language,
        "codec": track.codec_id or track.codec,
        "strategy": task.strategy.value,
        "state": task.state.value,
        "output": str(task.final_path),
        "error_kind": task.error_kind,
        "error": str(task.error) if task.error else None,
        "log": str(task.log_path) if task.log_path else None,
    }


def run_stats(run: BatchRun) -> Dict[str, int]:
    return {
        "total": run.total,
        "completed": run.completed,
        "succeeded": len(run.succeeded),
        "failed": len(run.failed),
    }


def write_report(run: BatchRun, fmt: str, directory: Union[str, Path, None] = None) -> Optional[Path]:
    """Write a JSON or CSV report for *run* and return its path.

    Nothing is written for an empty run.
    """
    if not run.tasks:
        return None
    directory = Path(directory) if directory else Path.cwd()
    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if fmt == "json":
        report_file = directory / f"{REPORT_PREFIX}_{timestamp}.json"
        with open(report_file, "w") as fh:
            json.dump(
                {
                    "timestamp": timestamp,
                    "container": str(run.container),
                    "stats": run_stats(run),
                    "tracks": [task_record(task) for task in run.tasks],
                },
                fh, indent=2,
            )
    elif fmt == "csv":
        report_file = directory / f"{REPORT_PREFIX}_{timestamp}.csv"
        with open(report_file, "w", newline="") as fh:
            writer = csv.writer(fh)
            writer.writerow(CSV_FIELDS)
            for task in run.tasks:
                record = task_record(task)
                writer.writerow([
                    record["track_id"],
                    record["track_number"],
                    record["language"],
                    record["codec"],
                    record["strategy"],
                    record["state"],
                    record["output"],
                    record["error_kind"] or "",
                    record["error"] or "",
                ])
    else:
        raise ValueError(f"Unknown report format: {fmt!r}")

    logging.info(f"\nReport saved to: {report_file}")
    return report_file


def format_summary(run: BatchRun) -> List[str]:
    """Lines of the human-readable end-of-run summary."""
    lines = [
        "=" * 50,
        "SUMMARY",
        "=" * 50,
        f"Container:            {run.container.name}",
        f"Tracks processed:     {run.completed}/{run.total}",
        f"Subtitles written:    {len(run.succeeded)}",
        f"Failures:             {len(run.failed)}",
    ]

    if run.started_at and run.finished_at:
        duration = (run.finished_at - run.started_at).total_seconds()
        lines += [
            "",
            f"Started:              {run.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Finished:             {run.finished_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"Duration:             {format_duration(duration)}",
        ]

    if run.succeeded:
        lines += ["", "Written:"]
        lines += [f"  {task.final_path}" for task in run.succeeded]

    for task in run.failed:
        lines += ["", f"FAILED {task.track.describe()}: {task.error_kind}", f"  {task.error}"]
        if task.output:
            output = truncate_output(task.output.rstrip(), task.log_path)
            lines += [f"  | {line}" for line in output.splitlines()]
        if task.log_path:
            lines.append(f"  Log: {task.log_path}")
    return lines


def print_summary(run: BatchRun) -> None:
    for line in format_summary(run):
        logging.info(line)
