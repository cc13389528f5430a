"""Map a subtitle codec to an extraction strategy and output extension."""

import re
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Tuple, Union

from .models import ContainerTrack, Strategy


class CodecFamily(str, Enum):
    TEXT = "text"
    MARKUP = "markup"
    PGS = "pgs"
    VOBSUB = "vobsub"
    UNKNOWN = "unknown"


# Normalised alias → family.  Codec strings come both as Matroska codec IDs
# ("S_HDMV/PGS") and as mkvmerge/ffprobe display names ("HDMV PGS",
# "hdmv_pgs_subtitle"); normalisation folds "_", "/", "-" into spaces so
# those spellings share one alias.  The longest alias found in the codec wins.
CODEC_ALIASES: Mapping[str, CodecFamily] = MappingProxyType({
    "s text utf8": CodecFamily.TEXT,
    "subrip": CodecFamily.TEXT,
    "srt": CodecFamily.TEXT,
    "mov text": CodecFamily.TEXT,
    "tx3g": CodecFamily.TEXT,
    "s text ass": CodecFamily.MARKUP,
    "s text ssa": CodecFamily.MARKUP,
    "substationalpha": CodecFamily.MARKUP,
    "substation alpha": CodecFamily.MARKUP,
    "sub station alpha": CodecFamily.MARKUP,
    "ass": CodecFamily.MARKUP,
    "ssa": CodecFamily.MARKUP,
    "s hdmv pgs": CodecFamily.PGS,
    "hdmv pgs": CodecFamily.PGS,
    "hdmv pgs subtitle": CodecFamily.PGS,
    "pgssub": CodecFamily.PGS,
    "pgs": CodecFamily.PGS,
    "s vobsub": CodecFamily.VOBSUB,
    "vobsub": CodecFamily.VOBSUB,
    "dvd subtitle": CodecFamily.VOBSUB,
    "dvdsub": CodecFamily.VOBSUB,
})

# family → (native extension, strategy when converting)
_FAMILY_OUTPUT: Mapping[CodecFamily, Tuple[str, Strategy]] = MappingProxyType({
    CodecFamily.TEXT: ("srt", Strategy.PASS_THROUGH),
    CodecFamily.MARKUP: ("ass", Strategy.MARKUP_TO_TEXT),
    CodecFamily.PGS: ("sup", Strategy.OCR_IMAGE_TO_TEXT),
    CodecFamily.VOBSUB: ("idx", Strategy.OCR_IMAGE_TO_TEXT),
})

CONVERTED_EXTENSION = "srt"
FALLBACK_EXTENSION = "bin"

_SEPARATORS = re.compile(r"[\s_/\-]+")


def normalize_codec(codec: str) -> str:
    return _SEPARATORS.sub(" ", (codec or "").lower()).strip()


def _codec_of(track_or_codec: Union[ContainerTrack, str]) -> str:
    if isinstance(track_or_codec, ContainerTrack):
        return track_or_codec.codec_id or track_or_codec.codec
    return track_or_codec or ""


def codec_family(track_or_codec: Union[ContainerTrack, str]) -> CodecFamily:
    """Return the codec family, matching aliases as whole words."""
    words = f" {normalize_codec(_codec_of(track_or_codec))} "
    best = ""
    for alias in CODEC_ALIASES:
        if len(alias) > len(best) and f" {alias} " in words:
            best = alias
    if not best:
        # Fused spellings such as "hdmvpgs" or "pgssubtitle".
        fused = words.replace(" ", "")
        for alias in CODEC_ALIASES:
            squashed = alias.replace(" ", "")
            if len(squashed) > 4 and len(alias) > len(best) and squashed in fused:
                best = alias
    return CODEC_ALIASES[best] if best else CodecFamily.UNKNOWN


def fallback_extension(codec: str) -> str:
    """Lower-cased codec name with slashes replaced, for unrecognised codecs."""
    cleaned = (codec or "").strip().lower().replace("/", "_").replace("\\", "_")
    cleaned = re.sub(r"[^a-z0-9_.+-]", "_", cleaned).strip("._")
    return cleaned or FALLBACK_EXTENSION


def classify(
    track_or_codec: Union[ContainerTrack, str], convert: bool = False
) -> Tuple[Strategy, str]:
    """Return ``(strategy, target_extension)`` for a track or codec string.

    *convert* is the user's opt-in to OCR/markup conversion; without it every
    codec is passed through in its native format.
    """
    codec = _codec_of(track_or_codec)
    family = codec_family(codec)
    if family is CodecFamily.UNKNOWN:
        return Strategy.PASS_THROUGH, fallback_extension(codec)

    native_ext, convert_strategy = _FAMILY_OUTPUT[family]
    if convert and convert_strategy is not Strategy.PASS_THROUGH:
        return convert_strategy, CONVERTED_EXTENSION
    return Strategy.PASS_THROUGH, native_ext


def native_extension(track_or_codec: Union[ContainerTrack, str]) -> str:
    """Extension of the file mkvextract writes for this codec."""
    return classify(track_or_codec, convert=False)[1]
