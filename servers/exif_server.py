# servers/exif_server.py
from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
# --- project-root import bootstrap ---
import sys, os
_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)
# --- end bootstrap ---

import logging
from typing import List, Optional

from dotenv import load_dotenv

from schemas import ImageSource, Segment, ToolResponse
from utils import operations

load_dotenv()
TRANSPORT = os.getenv("EXIF_MCP_TRANSPORT", "stdio")
HOST = os.getenv("EXIF_MCP_HOST", "127.0.0.1")
PORT = int(os.getenv("EXIF_MCP_PORT", "8974"))
LOG_LEVEL = os.getenv("EXIF_MCP_LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("exif-mcp")

app = FastMCP("exif-mcp", instructions="Extract image metadata (EXIF, GPS, XMP, ICC, IPTC, JFIF, IHDR)")


def _deliver(res: ToolResponse) -> str:
    """ToolResponse → 툴 반환값. 에러 응답은 MCP 에러(isError)로."""
    if res.is_error:
        raise ToolError(res.text)
    return res.text


# ---------- 세그먼트 툴 ----------
@app.tool(name="read-metadata", description="Read all or specified metadata segments from an image")
def read_metadata(image: ImageSource, segments: Optional[List[Segment]] = None) -> str:
    return _deliver(operations.read_metadata(image, segments))

@app.tool(name="read-exif", description="Read EXIF data from an image with optional tag filtering")
def read_exif(image: ImageSource, pick: Optional[List[str]] = None) -> str:
    return _deliver(operations.read_exif(image, pick))

@app.tool(name="read-xmp", description="Read XMP metadata from an image with option for extended XMP segments")
def read_xmp(image: ImageSource, extended: Optional[bool] = None) -> str:
    return _deliver(operations.read_xmp(image, extended))

@app.tool(name="read-icc", description="Read ICC metadata from an image")
def read_icc(image: ImageSource) -> str:
    return _deliver(operations.read_icc(image))

@app.tool(name="read-iptc", description="Read IPTC metadata from an image")
def read_iptc(image: ImageSource) -> str:
    return _deliver(operations.read_iptc(image))

@app.tool(name="read-jfif", description="Read JFIF metadata from an image")
def read_jfif(image: ImageSource) -> str:
    return _deliver(operations.read_jfif(image))

@app.tool(name="read-ihdr", description="Read IHDR metadata from an image")
def read_ihdr(image: ImageSource) -> str:
    return _deliver(operations.read_ihdr(image))


# ---------- 전용 툴 ----------
@app.tool(name="orientation", description="Get image orientation value (1-8)")
def orientation(image: ImageSource) -> str:
    return _deliver(operations.orientation(image))

@app.tool(name="rotation-info", description="Get detailed rotation and flip information from image orientation")
def rotation_info(image: ImageSource) -> str:
    return _deliver(operations.rotation_info(image))

@app.tool(name="gps-coordinates", description="Extract GPS coordinates (latitude/longitude) from image metadata")
def gps_coordinates(image: ImageSource) -> str:
    return _deliver(operations.gps_coordinates(image))

@app.tool(name="thumbnail", description="Extract embedded thumbnail from image as base64 data or URL")
def thumbnail(image: ImageSource, url: Optional[bool] = None) -> str:
    return _deliver(operations.thumbnail(image, url))


def main():
    # stdout 은 stdio 전송용 → 로그는 stderr 로
    logging.basicConfig(
        level=LOG_LEVEL,
        stream=sys.stderr,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info("Starting exif-mcp server (%s transport)...", TRANSPORT)
    if TRANSPORT == "http":
        app.run(transport="http", host=HOST, port=PORT)
    else:
        app.run()
    logger.info("exif-mcp server stopped")

if __name__ == "__main__":
    main()
