# utils/exif_reader.py
"""Pillow / piexif 기반 메타데이터 읽기.

모든 함수는 원본 이미지 바이트를 받음. 이미지 자체를 못 여는 Pillow
오류(손상/미지원 포맷)는 여기서 잡지 않음. 개별 세그먼트 오류는 건너뜀.
"""
import io
import logging
import math
import re
import struct
from typing import Any, Dict, List, Optional, Tuple

import piexif
from defusedxml import ElementTree
from PIL import ExifTags, Image, ImageCms, IptcImagePlugin
from PIL.TiffImagePlugin import IFDRational
from pillow_heif import register_heif_opener

from schemas import GpsCoordinates, ParserOptions, RotationInfo

register_heif_opener()
logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825
ORIENTATION_TAG = 0x0112
MAKER_NOTE_TAG = 0x927C
POINTER_TAGS = {EXIF_IFD, GPS_IFD, 0xA005}  # ExifOffset, GPSInfo, InteropOffset

XMP_EXTENSION_HEADER = b"http://ns.adobe.com/xmp/extension/\x00"
TIFF_HEADERS = (b"II*\x00", b"MM\x00*")
PIEXIF_HEADERS = (b"Exif", b"\xff\xd8") + TIFF_HEADERS

# IIM 레코드 2 (application record) 데이터셋 이름
IPTC_DATASETS = {
    0: "ApplicationRecordVersion",
    5: "ObjectName",
    7: "EditStatus",
    10: "Urgency",
    15: "Category",
    20: "SupplementalCategories",
    25: "Keywords",
    40: "SpecialInstructions",
    55: "DateCreated",
    60: "TimeCreated",
    62: "DigitalCreationDate",
    63: "DigitalCreationTime",
    80: "Byline",
    85: "BylineTitle",
    90: "City",
    92: "Sublocation",
    95: "State",
    100: "CountryCode",
    101: "Country",
    103: "OriginalTransmissionReference",
    105: "Headline",
    110: "Credit",
    115: "Source",
    116: "CopyrightNotice",
    118: "Contact",
    120: "Caption",
    122: "Writer",
}

PNG_COLOR_TYPES = {
    0: "Grayscale",
    2: "RGB",
    3: "Palette",
    4: "Grayscale with Alpha",
    6: "RGB with Alpha",
}

# orientation → (deg, scale_x, scale_y, dimension_swapped)
ROTATIONS = {
    1: (0, 1, 1, False),
    2: (0, -1, 1, False),
    3: (180, 1, 1, False),
    4: (180, -1, 1, False),
    5: (90, 1, -1, True),
    6: (90, 1, 1, True),
    7: (270, 1, -1, True),
    8: (270, 1, 1, True),
}


# ----- 내부 유틸: 값 변환 -----
def _to_float(x):
    if isinstance(x, IFDRational):
        return float(x)
    if isinstance(x, (int, float)):
        return float(x)
    if isinstance(x, tuple) and len(x) == 2:
        a, b = x
        return float(a) / float(b)
    return float(x)

def _dms_to_deg(dms):
    if isinstance(dms, (int, float, IFDRational)):
        return _to_float(dms)
    d, m, s = (_to_float(dms[0]), _to_float(dms[1]), _to_float(dms[2]))
    return d + m/60.0 + s/3600.0

def _decode_bytes(value: bytes):
    text = value.decode("utf-8", errors="replace").strip("\x00")
    if text.isprintable():
        return text
    if len(value) <= 64:
        return list(value)
    return f"<binary data: {len(value)} bytes>"

def _jsonable(value):
    """Pillow 값 → JSON 기본 타입"""
    if isinstance(value, IFDRational):
        f = float(value)
        return None if math.isnan(f) or math.isinf(f) else f
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    if isinstance(value, (bytes, bytearray)):
        return _decode_bytes(bytes(value))
    if isinstance(value, (tuple, list)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# ----- 세그먼트별 리더 -----
def _read_tiff(img: Image.Image, pick: Optional[List[str]]) -> Dict[str, Any]:
    exif = img.getexif()
    out: Dict[str, Any] = {}
    for tag, value in exif.items():
        if tag in POINTER_TAGS:
            continue
        out[ExifTags.TAGS.get(tag, str(tag))] = _jsonable(value)
    for tag, value in exif.get_ifd(EXIF_IFD).items():
        if tag == MAKER_NOTE_TAG:
            continue
        out[ExifTags.TAGS.get(tag, str(tag))] = _jsonable(value)

    gps_ifd = exif.get_ifd(GPS_IFD)
    for tag, value in gps_ifd.items():
        out[ExifTags.GPSTAGS.get(tag, str(tag))] = _jsonable(value)
    coords = _coordinates(gps_ifd)
    if coords:
        out["latitude"] = coords.latitude
        out["longitude"] = coords.longitude

    if pick is not None:
        wanted = set(pick)
        out = {k: v for k, v in out.items() if k in wanted}
    return out

def _xml_name(tag: str) -> str:
    return re.sub(r"^{[^}]+}", "", tag)

def _xml_value(element):
    value: Dict[str, Any] = {_xml_name(k): v for k, v in element.attrib.items()}
    children = list(element)
    if children:
        for child in children:
            name = _xml_name(child.tag)
            child_value = _xml_value(child)
            if name in value:
                if not isinstance(value[name], list):
                    value[name] = [value[name]]
                value[name].append(child_value)
            else:
                value[name] = child_value
    elif value:
        if element.text:
            value["text"] = element.text
    else:
        return element.text
    return value

def _extended_xmp(img: Image.Image) -> Optional[Dict[str, Any]]:
    """JPEG Extended XMP 재조립 (GUID + offset 기준 APP1 청크)"""
    chunks: Dict[bytes, List[Tuple[int, int, bytes]]] = {}
    for marker, payload in getattr(img, "applist", []):
        if marker != "APP1" or not payload.startswith(XMP_EXTENSION_HEADER):
            continue
        body = payload[len(XMP_EXTENSION_HEADER):]
        if len(body) < 40:
            continue
        full_length, offset = struct.unpack(">II", body[32:40])
        chunks.setdefault(body[:32], []).append((full_length, offset, body[40:]))

    out: Dict[str, Any] = {}
    for guid, parts in chunks.items():
        # 선언된 길이는 실제로 받은 바이트 수를 넘을 수 없음
        full_length = parts[0][0]
        received = sum(len(part) for _, _, part in parts)
        if full_length > received or any(
            n != full_length or off + len(part) > full_length for n, off, part in parts
        ):
            logger.debug("skipping extended XMP %r: inconsistent chunk lengths", guid)
            continue
        buf = bytearray(full_length)
        for _, off, part in parts:
            buf[off:off + len(part)] = part
        try:
            root = ElementTree.fromstring(bytes(buf).rstrip(b"\x00"))
        except ElementTree.ParseError as e:
            logger.debug("skipping extended XMP %r: %s", guid, e)
            continue
        out.setdefault(_xml_name(root.tag), []).append(_xml_value(root))
    if not out:
        return None
    return {k: v[0] if len(v) == 1 else v for k, v in out.items()}

def _read_xmp(img: Image.Image, multi_segment: bool) -> Dict[str, Any]:
    getxmp = getattr(img, "getxmp", None)
    try:
        xmp = dict(getxmp() or {}) if getxmp else {}
    except ElementTree.ParseError as e:
        logger.debug("unreadable XMP packet: %s", e)
        xmp = {}
    if multi_segment:
        extended = _extended_xmp(img)
        if extended:
            xmp["extended"] = extended
    return _jsonable(xmp)

def _read_icc(img: Image.Image) -> Dict[str, Any]:
    icc = img.info.get("icc_profile")
    if not icc:
        return {}
    try:
        profile = ImageCms.ImageCmsProfile(io.BytesIO(icc)).profile
    except (OSError, ImageCms.PyCMSError) as e:
        logger.debug("unreadable ICC profile: %s", e)
        return {}
    fields = {
        "ProfileDescription": "profile_description",
        "ProfileCopyright": "copyright",
        "DeviceManufacturer": "manufacturer",
        "DeviceModel": "model",
        "ProfileClass": "device_class",
        "ColorSpaceData": "xcolor_space",
        "ProfileConnectionSpace": "connection_space",
        "ProfileVersion": "version",
        "RenderingIntent": "rendering_intent",
        "ProfileDateTime": "creation_date",
    }
    out: Dict[str, Any] = {"ProfileSize": len(icc)}
    for name, attr in fields.items():
        value = getattr(profile, attr, None)
        if isinstance(value, str):
            value = value.strip()
        if value not in (None, ""):
            out[name] = _jsonable(value)
    return out

def _read_iptc(img: Image.Image) -> Dict[str, Any]:
    info = IptcImagePlugin.getiptcinfo(img) or {}
    out: Dict[str, Any] = {}
    for (record, dataset), value in info.items():
        name = IPTC_DATASETS.get(dataset, f"{record}:{dataset}") if record == 2 else f"{record}:{dataset}"
        if isinstance(value, list):
            out[name] = [_jsonable(v) for v in value]
        else:
            out[name] = _jsonable(value)
    return out

def _read_jfif(img: Image.Image) -> Dict[str, Any]:
    if "jfif" not in img.info:
        return {}
    out: Dict[str, Any] = {}
    version = img.info.get("jfif_version")
    if version:
        out["JFIFVersion"] = f"{version[0]}.{version[1]:02d}"
    if "jfif_unit" in img.info:
        out["ResolutionUnit"] = img.info["jfif_unit"]
    density = img.info.get("jfif_density")
    if density:
        out["XResolution"], out["YResolution"] = density
    return out

def _read_ihdr(img: Image.Image, data: bytes) -> Dict[str, Any]:
    if img.format != "PNG" or data[12:16] != b"IHDR":
        return {}
    width, height, depth, color, compression, filt, interlace = struct.unpack(">IIBBBBB", data[16:29])
    out: Dict[str, Any] = {
        "ImageWidth": width,
        "ImageHeight": height,
        "BitDepth": depth,
        "ColorType": PNG_COLOR_TYPES.get(color, color),
        "Compression": "Deflate/Inflate" if compression == 0 else compression,
        "Filter": "Adaptive" if filt == 0 else filt,
        "Interlace": {0: "Noninterlaced", 1: "Adam7 Interlace"}.get(interlace, interlace),
    }
    for key, value in (getattr(img, "text", None) or {}).items():
        out.setdefault(key, _jsonable(value))
    return out

def _coordinates(gps_ifd) -> Optional[GpsCoordinates]:
    if 2 not in gps_ifd or 4 not in gps_ifd:
        return None
    try:
        lat = _dms_to_deg(gps_ifd[2])
        lon = _dms_to_deg(gps_ifd[4])
    except (TypeError, ValueError, IndexError, ZeroDivisionError) as e:
        logger.debug("unreadable GPS coordinates: %s", e)
        return None
    lat_ref = str(gps_ifd.get(1, "N")).upper()
    lon_ref = str(gps_ifd.get(3, "E")).upper()
    lat = abs(lat) if lat_ref != "S" else -abs(lat)
    lon = abs(lon) if lon_ref != "W" else -abs(lon)
    return GpsCoordinates(latitude=lat, longitude=lon)


# ----- 공개 API -----
def parse(data: bytes, options: ParserOptions) -> Optional[Dict[str, Any]]:
    """``options`` 에서 켜진 세그먼트만 읽음.

    TIFF(EXIF/GPS) 태그는 최상위에, 나머지 세그먼트는 소문자 이름 키 아래에.
    아무것도 없으면 None.
    """
    with Image.open(io.BytesIO(data)) as img:
        out: Dict[str, Any] = {}
        if options.tiff:
            out.update(_read_tiff(img, options.pick))
        sections = (
            ("xmp", options.xmp, lambda: _read_xmp(img, bool(options.multi_segment))),
            ("icc", options.icc, lambda: _read_icc(img)),
            ("iptc", options.iptc, lambda: _read_iptc(img)),
            ("jfif", options.jfif, lambda: _read_jfif(img)),
            ("ihdr", options.ihdr, lambda: _read_ihdr(img, data)),
        )
        for key, enabled, read in sections:
            if enabled:
                section = read()
                if section:
                    out[key] = section
    return out or None

def orientation(data: bytes) -> Optional[int]:
    with Image.open(io.BytesIO(data)) as img:
        value = img.getexif().get(ORIENTATION_TAG)
    return value if value in ROTATIONS else None

def rotation(data: bytes) -> Optional[RotationInfo]:
    value = orientation(data)
    if value is None:
        return None
    deg, scale_x, scale_y, swapped = ROTATIONS[value]
    return RotationInfo(deg=deg, rad=math.radians(deg), scale_x=scale_x, scale_y=scale_y, dimension_swapped=swapped)

def gps(data: bytes) -> Optional[GpsCoordinates]:
    with Image.open(io.BytesIO(data)) as img:
        return _coordinates(img.getexif().get_ifd(GPS_IFD))

def thumbnail(data: bytes) -> Optional[bytes]:
    """IFD1 에 내장된 JPEG 썸네일 (없으면 None)"""
    if data[:4] in TIFF_HEADERS:
        exif_bytes = data
    else:
        with Image.open(io.BytesIO(data)) as img:
            exif_bytes = img.info.get("exif")
    # piexif.load 는 모르는 헤더를 파일 경로로 취급하므로 여기서 거름
    if not exif_bytes or not exif_bytes.startswith(PIEXIF_HEADERS):
        return None
    return piexif.load(exif_bytes).get("thumbnail") or None
