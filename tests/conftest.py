"""
exif-mcp 테스트 fixture.

바이너리 파일 없이 Pillow / piexif 로 테스트 이미지를 즉석에서 생성.
"""

import io
import struct

import piexif
import pytest
from PIL import Image, ImageCms, PngImagePlugin

XMP_PACKET = (
    b'<x:xmpmeta xmlns:x="adobe:ns:meta/">'
    b'<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
    b'<rdf:Description xmlns:dc="http://purl.org/dc/elements/1.1/" dc:format="image/jpeg"/>'
    b"</rdf:RDF></x:xmpmeta>"
)
EXTENDED_XMP_PACKET = (
    b'<x:xmpmeta xmlns:x="adobe:ns:meta/">'
    b'<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
    b'<rdf:Description xmlns:xmpNote="http://ns.adobe.com/xmp/note/" xmpNote:Extra="yes"/>'
    b"</rdf:RDF></x:xmpmeta>"
)


def _jpeg_bytes(img, **save_kwargs):
    buf = io.BytesIO()
    img.save(buf, format="JPEG", **save_kwargs)
    return buf.getvalue()


def _app1(payload):
    return b"\xff\xe1" + struct.pack(">H", len(payload) + 2) + payload


def insert_segments(jpeg, *segments):
    """SOI 바로 뒤에 마커 세그먼트 삽입"""
    assert jpeg[:2] == b"\xff\xd8"
    return jpeg[:2] + b"".join(segments) + jpeg[2:]


@pytest.fixture(scope="session")
def thumbnail_bytes():
    return _jpeg_bytes(Image.new("RGB", (8, 6), color="blue"))


@pytest.fixture(scope="session")
def exif_bytes(thumbnail_bytes):
    exif = {
        "0th": {
            piexif.ImageIFD.Make: "TestCam",
            piexif.ImageIFD.Model: "Model X",
            piexif.ImageIFD.Orientation: 6,
        },
        "Exif": {
            piexif.ExifIFD.DateTimeOriginal: "2024:05:01 10:00:00",
            piexif.ExifIFD.ExposureTime: (1, 250),
        },
        "GPS": {
            piexif.GPSIFD.GPSLatitudeRef: "N",
            piexif.GPSIFD.GPSLatitude: ((37, 1), (46, 1), (2964, 100)),
            piexif.GPSIFD.GPSLongitudeRef: "W",
            piexif.GPSIFD.GPSLongitude: ((122, 1), (25, 1), (984, 100)),
        },
        "1st": {
            piexif.ImageIFD.XResolution: (72, 1),
            piexif.ImageIFD.YResolution: (72, 1),
        },
        "thumbnail": thumbnail_bytes,
    }
    return piexif.dump(exif)


@pytest.fixture(scope="session")
def icc_bytes():
    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()


@pytest.fixture(scope="session")
def sample_jpeg(exif_bytes, icc_bytes):
    """EXIF(GPS, orientation 6, 썸네일) + ICC + XMP + Extended XMP 가 든 JPEG"""
    jpeg = _jpeg_bytes(Image.new("RGB", (64, 48), color="red"), exif=exif_bytes, icc_profile=icc_bytes)
    guid = b"0123456789ABCDEF0123456789ABCDEF"
    extension = (
        b"http://ns.adobe.com/xmp/extension/\x00"
        + guid
        + struct.pack(">II", len(EXTENDED_XMP_PACKET), 0)
        + EXTENDED_XMP_PACKET
    )
    return insert_segments(
        jpeg,
        _app1(b"http://ns.adobe.com/xap/1.0/\x00" + XMP_PACKET),
        _app1(extension),
    )


@pytest.fixture(scope="session")
def plain_jpeg():
    return _jpeg_bytes(Image.new("RGB", (16, 16), color="green"))


@pytest.fixture(scope="session")
def sample_png():
    info = PngImagePlugin.PngInfo()
    info.add_text("Comment", "hello")
    buf = io.BytesIO()
    Image.new("RGBA", (10, 5)).save(buf, format="PNG", pnginfo=info)
    return buf.getvalue()


@pytest.fixture
def sample_path(tmp_path, sample_jpeg):
    path = tmp_path / "sample.jpg"
    path.write_bytes(sample_jpeg)
    return path


def _app13(payload):
    return b"\xff\xed" + struct.pack(">H", len(payload) + 2) + payload


def _iim(dataset, value):
    return b"\x1c" + bytes([2, dataset]) + struct.pack(">H", len(value)) + value


def _extension(guid, full_length, offset, part):
    return _app1(b"http://ns.adobe.com/xmp/extension/\x00" + guid + struct.pack(">II", full_length, offset) + part)


@pytest.fixture(scope="session")
def iptc_jpeg(plain_jpeg):
    """Photoshop APP13 IIM 블록 (ObjectName + Keywords 2개)"""
    iim = _iim(5, b"Sunset") + _iim(25, b"beach") + _iim(25, b"sky")
    resource = b"8BIM" + struct.pack(">H", 0x0404) + b"\x00\x00" + struct.pack(">I", len(iim)) + iim
    if len(iim) % 2:
        resource += b"\x00"
    return insert_segments(plain_jpeg, _app13(b"Photoshop 3.0\x00" + resource))


@pytest.fixture(scope="session")
def bad_icc_jpeg(exif_bytes):
    """EXIF 는 정상, ICC 프로파일은 깨진 JPEG"""
    return _jpeg_bytes(Image.new("RGB", (16, 16)), exif=exif_bytes, icc_profile=b"garbage" * 20)


@pytest.fixture(scope="session")
def bad_extended_xmp_jpeg(plain_jpeg):
    """정상 XMP 패킷 + 각각 다른 식으로 깨진 Extended XMP 청크들"""
    unclosed = EXTENDED_XMP_PACKET[:40]
    return insert_segments(
        plain_jpeg,
        _app1(b"http://ns.adobe.com/xap/1.0/\x00" + XMP_PACKET),
        # 닫히지 않은 XML
        _extension(b"A" * 32, len(unclosed), 0, unclosed),
        # 선언 길이가 받은 바이트보다 훨씬 큼
        _extension(b"B" * 32, 400_000_000, 0, EXTENDED_XMP_PACKET),
        # offset + 길이가 선언 길이를 넘음
        _extension(b"C" * 32, len(EXTENDED_XMP_PACKET), 16, EXTENDED_XMP_PACKET),
    )
