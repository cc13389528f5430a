"""Language code tables shared by the OCR converters.

Matroska stores ISO 639-2 codes (bibliographic ``fre``/``ger`` as well as
terminological ``fra``/``deu``).  vobsub2srt wants ISO 639-1 two-letter codes
and Tesseract wants the name of its ``.traineddata`` file, which is ISO 639-2/T
for most languages.
"""

import logging
from types import MappingProxyType
from typing import Mapping

UNDETERMINED = "und"

# ISO 639-2 (B and T variants) → ISO 639-1.
TWO_LETTER: Mapping[str, str] = MappingProxyType({
    "eng": "en",
    "fre": "fr", "fra": "fr",
    "ger": "de", "deu": "de",
    "ita": "it",
    "spa": "es",
    "por": "pt",
    "dut": "nl", "nld": "nl",
    "swe": "sv",
    "nor": "no",
    "dan": "da",
    "fin": "fi",
    "jpn": "ja",
    "kor": "ko",
    "chi": "zh", "zho": "zh",
    "rus": "ru",
    "pol": "pl",
    "cze": "cs", "ces": "cs",
    "hun": "hu",
    "gre": "el", "ell": "el",
    "tur": "tr",
    "ara": "ar",
    "heb": "he",
    "tha": "th",
    "hin": "hi",
    "rum": "ro", "ron": "ro",
    "vie": "vi",
})

# ISO 639-1 → Tesseract traineddata name.
TESSERACT: Mapping[str, str] = MappingProxyType({
    "en": "eng",
    "fr": "fra",
    "de": "deu",
    "it": "ita",
    "es": "spa",
    "pt": "por",
    "nl": "nld",
    "sv": "swe",
    "no": "nor",
    "da": "dan",
    "fi": "fin",
    "ja": "jpn",
    "ko": "kor",
    "zh": "chi_sim",
    "ru": "rus",
    "pl": "pol",
    "cs": "ces",
    "hu": "hun",
    "el": "ell",
    "tr": "tur",
    "ar": "ara",
    "he": "heb",
    "th": "tha",
    "hi": "hin",
    "ro": "ron",
    "vi": "vie",
})

# Display names used by --list-tracks and the OCR language option.
NAMES: Mapping[str, str] = MappingProxyType({
    "en": "English", "fr": "French", "de": "German", "es": "Spanish",
    "it": "Italian", "pt": "Portuguese", "nl": "Dutch", "ru": "Russian",
    "ja": "Japanese", "zh": "Chinese", "ko": "Korean", "cs": "Czech",
    "pl": "Polish", "sv": "Swedish", "da": "Danish", "fi": "Finnish",
    "no": "Norwegian", "hu": "Hungarian", "el": "Greek", "tr": "Turkish",
    "ar": "Arabic", "he": "Hebrew", "th": "Thai", "hi": "Hindi",
    "ro": "Romanian", "vi": "Vietnamese",
})


def normalize(code: str) -> str:
    """Lower-case and trim *code*; empty becomes ``und``."""
    code = (code or "").strip().lower()
    return code or UNDETERMINED


def to_two_letter(code: str) -> str:
    """Return the ISO 639-1 form of *code*, or *code* unchanged with a warning."""
    code = normalize(code)
    if code in TESSERACT:
        return code
    if code in TWO_LETTER:
        return TWO_LETTER[code]
    logging.warning(f"No two-letter mapping for language code '{code}', using it as-is")
    return code


def to_tesseract(code: str) -> str:
    """Return the Tesseract traineddata name for *code*.

    Accepts either a two- or three-letter code.  Unmapped codes are passed
    through unchanged with a warning.
    """
    code = normalize(code)
    two = TWO_LETTER.get(code, code)
    if two in TESSERACT:
        return TESSERACT[two]
    logging.warning(f"No Tesseract mapping for language code '{code}', using it as-is")
    return code


def display_name(code: str) -> str:
    code = normalize(code)
    return NAMES.get(TWO_LETTER.get(code, code), code)
