########################################
# schemas.py (공유 스키마)
########################################
import json
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from typing_extensions import Annotated

# ---------- 이미지 소스 디스크립터 ----------
class PathSource(BaseModel):
    kind: Literal["path"] = "path"
    path: str

class UrlSource(BaseModel):
    kind: Literal["url"] = "url"
    url: str  # file:// 은 로컬에서 읽고 나머지는 HTTP(S)로 가져옴

class Base64Source(BaseModel):
    kind: Literal["base64"] = "base64"
    data: str  # 순수 base64 또는 data:<mime>;base64,<payload>

class BufferSource(BaseModel):
    kind: Literal["buffer"] = "buffer"
    buffer: str  # base64 인코딩된 바이트

ImageSource = Annotated[
    Union[PathSource, UrlSource, Base64Source, BufferSource],
    Field(discriminator="kind"),
]
image_source_adapter = TypeAdapter(ImageSource)

# ---------- 세그먼트 / 파서 옵션 ----------
Segment = Literal["EXIF", "GPS", "XMP", "ICC", "IPTC", "JFIF", "IHDR"]
SingleSegment = Literal["ICC", "IPTC", "JFIF", "IHDR"]

class ParserOptions(BaseModel):
    tiff: bool = False  # EXIF + GPS
    xmp: bool = False
    icc: bool = False
    iptc: bool = False
    jfif: bool = False
    ihdr: bool = False
    pick: Optional[List[str]] = None
    multi_segment: Optional[bool] = None

# ---------- 리더 결과 ----------
class RotationInfo(BaseModel):
    deg: int
    rad: float
    scale_x: int
    scale_y: int
    dimension_swapped: bool

class GpsCoordinates(BaseModel):
    latitude: float
    longitude: float

# ---------- 툴 응답 envelope ----------
class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str

class ToolResponse(BaseModel):
    content: List[TextContent]
    is_error: bool = False

    @property
    def text(self) -> str:
        return "\n".join(c.text for c in self.content)

def success_response(data: Any) -> ToolResponse:
    text = data if isinstance(data, str) else json.dumps(data, indent=2, ensure_ascii=False, default=str)
    return ToolResponse(content=[TextContent(text=text)])

def error_response(message: str) -> ToolResponse:
    return ToolResponse(content=[TextContent(text=message)], is_error=True)
