# utils/operations.py
import base64
import functools
import logging
from typing import Callable, List, Optional

from schemas import ImageSource, Segment, SingleSegment, ToolResponse, error_response, success_response
from utils import exif_reader
from utils.loaders import load_image
from utils.segments import (
    options_for_exif,
    options_for_segments,
    options_for_single_segment,
    options_for_xmp,
)

logger = logging.getLogger(__name__)

THUMBNAIL_MIME = "image/jpeg"  # IFD1 썸네일은 JPEG


def reports_errors(action: str) -> Callable[[Callable[..., ToolResponse]], Callable[..., ToolResponse]]:
    """감싼 작업에서 난 예외를 전부 에러 응답으로 변환"""
    def decorate(fn):
        @functools.wraps(fn)
        def wrapper(*args, **kwargs) -> ToolResponse:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                logger.warning("Error %s: %s", action, e)
                return error_response(f"Error {action}: {e}")
        return wrapper
    return decorate


# ---------- 메타데이터 세그먼트 ----------
@reports_errors("reading metadata")
def read_metadata(image: ImageSource, segments: Optional[List[Segment]] = None) -> ToolResponse:
    buf = load_image(image)
    meta = exif_reader.parse(buf, options_for_segments(segments))
    if not meta:
        return error_response("No metadata found in image")
    return success_response(meta)

@reports_errors("reading EXIF data")
def read_exif(image: ImageSource, pick: Optional[List[str]] = None) -> ToolResponse:
    buf = load_image(image)
    meta = exif_reader.parse(buf, options_for_exif(pick))
    if not meta:
        return error_response("No EXIF metadata found in image")
    return success_response(meta)

@reports_errors("reading XMP data")
def read_xmp(image: ImageSource, extended: Optional[bool] = None) -> ToolResponse:
    buf = load_image(image)
    meta = exif_reader.parse(buf, options_for_xmp(extended))
    if not meta or not meta.get("xmp"):
        return error_response("No XMP metadata found in image")
    return success_response(meta)

def read_segment(image: ImageSource, segment: SingleSegment) -> ToolResponse:
    """ICC / IPTC / JFIF / IHDR 툴 공통 본체"""
    @reports_errors(f"reading {segment} data")
    def run() -> ToolResponse:
        buf = load_image(image)
        meta = exif_reader.parse(buf, options_for_single_segment(segment))
        if not meta or not meta.get(segment.lower()):
            return error_response(f"No {segment} metadata found in image")
        return success_response(meta)
    return run()

def read_icc(image: ImageSource) -> ToolResponse:
    return read_segment(image, "ICC")

def read_iptc(image: ImageSource) -> ToolResponse:
    return read_segment(image, "IPTC")

def read_jfif(image: ImageSource) -> ToolResponse:
    return read_segment(image, "JFIF")

def read_ihdr(image: ImageSource) -> ToolResponse:
    return read_segment(image, "IHDR")


# ---------- 전용 조회 ----------
@reports_errors("reading orientation")
def orientation(image: ImageSource) -> ToolResponse:
    value = exif_reader.orientation(load_image(image))
    if value is None:
        return error_response("No orientation metadata found in image")
    return success_response({"orientation": value})

@reports_errors("reading rotation info")
def rotation_info(image: ImageSource) -> ToolResponse:
    rotation = exif_reader.rotation(load_image(image))
    if not rotation:
        return error_response("No rotation metadata found in image")
    return success_response(rotation.model_dump())

@reports_errors("reading GPS data")
def gps_coordinates(image: ImageSource) -> ToolResponse:
    coords = exif_reader.gps(load_image(image))
    # GPS 없음은 에러가 아니라 정상 응답(null)
    return success_response(coords.model_dump() if coords else None)

@reports_errors("extracting thumbnail")
def thumbnail(image: ImageSource, url: Optional[bool] = None) -> ToolResponse:
    thumb = exif_reader.thumbnail(load_image(image))
    if not thumb:
        return error_response("No thumbnail found in image")
    b64 = base64.b64encode(thumb).decode("ascii")
    if url:
        return success_response({"base64": b64})
    return success_response({"data_url": f"data:{THUMBNAIL_MIME};base64,{b64}"})
