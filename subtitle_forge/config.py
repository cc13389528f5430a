"""Configuration loading and validation."""

import logging
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

CONFIG_NAME = ".subtitle-forge.yaml"

# Valid configuration keys and their expected Python types.
_VALID_KEYS: Dict[str, type] = {
    "output_dir": str,
    "convert": bool,
    "ocr_language": str,
    "retries": int,
    "report_format": str,
    "pgs_script": str,
    "tessdata_dir": str,
    "converter_timeout": float,
    "mkvmerge": str,
    "mkvextract": str,
    "mkvinfo": str,
    "ffmpeg": str,
    "deno": str,
    "vobsub2srt": str,
}

# Keys that accept both int and float values (e.g. `converter_timeout: 600` in YAML).
_NUMERIC_KEYS: frozenset = frozenset({"converter_timeout"})

_REPORT_FORMATS = {"json", "csv"}


@dataclass
class ForgeConfig:
    """Effective settings for one run (config file merged with CLI flags)."""

    output_dir: Optional[Path] = None
    convert: bool = False
    ocr_language: Optional[str] = None
    retries: int = 0
    report_format: Optional[str] = None
    pgs_script: Path = Path("~/pgs-to-srt/pgs-to-srt.js")
    tessdata_dir: Optional[Path] = None
    converter_timeout: Optional[float] = None
    mkvmerge: str = "mkvmerge"
    mkvextract: str = "mkvextract"
    mkvinfo: str = "mkvinfo"
    ffmpeg: str = "ffmpeg"
    deno: str = "deno"
    vobsub2srt: str = "vobsub2srt"

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "ForgeConfig":
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in config.items() if key in known}
        for key in ("output_dir", "pgs_script", "tessdata_dir"):
            if values.get(key) is not None:
                values[key] = Path(values[key]).expanduser()
        if values.get("converter_timeout") is not None:
            values["converter_timeout"] = float(values["converter_timeout"])
        return cls(**values)


def validate_config(config: Dict[str, Any]) -> None:
    """Validate *config* dict against known keys and types.

    Calls ``sys.exit(1)`` with a human-readable message on the first set of
    errors found so that the user sees all problems at once.
    """
    errors = []

    for key, value in config.items():
        if key not in _VALID_KEYS:
            errors.append(
                f"Unknown key '{key}'. Valid keys: {', '.join(sorted(_VALID_KEYS))}"
            )
            continue

        expected = _VALID_KEYS[key]
        if key in _NUMERIC_KEYS:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(
                    f"'{key}' must be a number, got {type(value).__name__}"
                )
        elif not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
            errors.append(
                f"'{key}' must be {expected.__name__}, got {type(value).__name__}"
            )

    # Value-level checks (only when the type already passed).
    retries = config.get("retries")
    if isinstance(retries, int) and not isinstance(retries, bool) and retries < 0:
        errors.append(f"'retries' must be >= 0, got {retries}")

    report_format = config.get("report_format")
    if isinstance(report_format, str) and report_format not in _REPORT_FORMATS:
        errors.append(
            f"'report_format' must be one of {sorted(_REPORT_FORMATS)}, got '{report_format}'"
        )

    output_dir = config.get("output_dir")
    if isinstance(output_dir, str):
        p = Path(output_dir).expanduser()
        if p.exists() and not p.is_dir():
            errors.append(
                f"'output_dir' exists but is not a directory: {output_dir}"
            )

    timeout = config.get("converter_timeout")
    if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout <= 0:
        errors.append(f"'converter_timeout' must be > 0, got {timeout}")

    if errors:
        print("Configuration error(s):", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        sys.exit(1)


def load_config() -> Dict[str, Any]:
    """Load and validate configuration from the first existing config file.

    Searches:
      1. ``~/.subtitle-forge.yaml``
      2. ``.subtitle-forge.yaml`` (current working directory)

    Returns an empty dict when no config file is found.
    """
    config_locations = [
        Path.home() / CONFIG_NAME,
        Path(CONFIG_NAME),
    ]

    for config_file in config_locations:
        if not config_file.exists():
            continue

        try:
            with open(config_file) as fh:
                config = yaml.safe_load(fh) or {}
            if not isinstance(config, dict):
                print(f"Configuration error: {config_file} must contain a mapping", file=sys.stderr)
                sys.exit(1)
            validate_config(config)  # exits on error
            logging.info(f"Loaded configuration from: {config_file}\n")
            return config
        except (OSError, yaml.YAMLError) as exc:
            logging.warning(f"Could not load config from {config_file}: {exc}")
        break

    return {}
