# utils/segments.py
from typing import Dict, Iterable, List, Optional

from schemas import ParserOptions, Segment, SingleSegment

# EXIF 와 GPS 는 둘 다 TIFF 블록 안에 있음
SEGMENT_FLAGS: Dict[str, str] = {
    "EXIF": "tiff",
    "GPS": "tiff",
    "XMP": "xmp",
    "ICC": "icc",
    "IPTC": "iptc",
    "JFIF": "jfif",
    "IHDR": "ihdr",
}

ALL_FLAGS = ("tiff", "xmp", "icc", "iptc", "jfif", "ihdr")


def options_for_segments(requested: Optional[Iterable[Segment]] = None) -> ParserOptions:
    """요청 세그먼트 → 파서 플래그. 요청이 없으면 전부."""
    requested = list(requested or [])
    if not requested:
        return ParserOptions(**{flag: True for flag in ALL_FLAGS})
    return ParserOptions(**{SEGMENT_FLAGS[seg]: True for seg in requested})

def options_for_exif(pick: Optional[List[str]] = None) -> ParserOptions:
    opts = ParserOptions(tiff=True)
    if pick is not None:
        opts.pick = list(pick)
    return opts

def options_for_xmp(extended: Optional[bool] = None) -> ParserOptions:
    return ParserOptions(xmp=True, multi_segment=bool(extended))

def options_for_single_segment(segment: SingleSegment) -> ParserOptions:
    return ParserOptions(**{SEGMENT_FLAGS[segment]: True})
