# utils/loaders.py
import base64
import binascii
import logging
import os
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests
from dotenv import load_dotenv

from schemas import Base64Source, BufferSource, ImageSource, PathSource, UrlSource

load_dotenv()
MAX_BASE64_CHARS = int(os.getenv("EXIF_MCP_MAX_BASE64_CHARS", "40000000"))  # 디코딩 시 약 30MB
FETCH_TIMEOUT = float(os.getenv("EXIF_MCP_FETCH_TIMEOUT", "30"))
HEADERS = {"User-Agent": os.getenv("EXIF_MCP_USER_AGENT", "exif-mcp/1.0")}

logger = logging.getLogger(__name__)


class ImageLoadError(Exception):
    """이미지 소스를 바이트로 만들지 못함"""


class PayloadTooLargeError(ImageLoadError):
    """인라인 base64 가 MAX_BASE64_CHARS 초과"""


# ----- 내부 유틸 -----
def _read_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()

def _file_url_to_path(url: str) -> str:
    """file:///tmp/a%20b.jpg → /tmp/a b.jpg (Windows 에서는 file://host/share → //host/share)"""
    parsed = urlparse(url)
    path = url2pathname(parsed.path)
    if parsed.netloc and parsed.netloc != "localhost":
        path = os.sep * 2 + parsed.netloc + path
    return path

def _fetch(url: str) -> bytes:
    logger.debug("fetching %s", url)
    r = requests.get(url, headers=HEADERS, timeout=FETCH_TIMEOUT)
    if not r.ok:
        raise ValueError(f"Failed to fetch URL: {r.status_code} {r.reason}")
    return r.content

def _decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 data: {e}") from e

def _read_source(src: ImageSource) -> bytes:
    if isinstance(src, PathSource):
        if not src.path:
            raise ValueError('Path is required for kind="path"')
        return _read_file(src.path)

    if isinstance(src, UrlSource):
        if not src.url:
            raise ValueError('URL is required for kind="url"')
        if src.url.startswith("file://"):
            return _read_file(_file_url_to_path(src.url))
        return _fetch(src.url)

    if isinstance(src, Base64Source):
        if not src.data:
            raise ValueError('Data is required for kind="base64"')
        if len(src.data) > MAX_BASE64_CHARS:
            raise PayloadTooLargeError("Failed to load image: PayloadTooLarge: Base64 data exceeds 30MB limit")
        if src.data.startswith("data:"):
            _, sep, payload = src.data.partition(",")
            if not sep:
                raise ValueError("Malformed data URI: missing ',' before the payload")
            return _decode_base64(payload)
        return _decode_base64(src.data)

    if isinstance(src, BufferSource):
        if not src.buffer:
            raise ValueError('Buffer is required for kind="buffer"')
        return _decode_base64(src.buffer)

    raise ValueError(f"Unsupported image source kind: {getattr(src, 'kind', src)!r}")


# ----- 공개 API -----
def load_image(src: ImageSource) -> bytes:
    """이미지 소스 디스크립터 → 원본 이미지 바이트.

    모든 실패는 "Failed to load image:" 접두어가 붙은 ImageLoadError 로,
    너무 큰 base64 는 하위 클래스 PayloadTooLargeError 로 올라감.
    """
    try:
        return _read_source(src)
    except ImageLoadError:
        raise
    except (OSError, ValueError, requests.RequestException) as e:
        raise ImageLoadError(f"Failed to load image: {e}") from e
