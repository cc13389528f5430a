"""Shared argparse helpers."""

import argparse
import re

_LANGUAGE_CODE = re.compile(r"^[A-Za-z]{2,3}$")


def non_negative_int(value: str) -> int:
    """argparse type validator: integer >= 0."""
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return ivalue


def language_code(value: str) -> str:
    """argparse type validator: a 2- or 3-letter ISO 639 code."""
    if not _LANGUAGE_CODE.match(value):
        raise argparse.ArgumentTypeError(f"not a 2- or 3-letter language code: {value}")
    return value.lower()
