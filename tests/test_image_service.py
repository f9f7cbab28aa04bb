"""Tests for image classification."""

import pytest

from ocr2pdf.services.image_service import ImageService, RejectionReason

WEBP_HEADER = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 8
HEIC_HEADER = b"\x00\x00\x00\x18ftypheic" + b"\x00" * 8
MIF1_HEADER = b"\x00\x00\x00\x18ftypmif1" + b"\x00" * 8


@pytest.fixture
def service() -> ImageService:
    return ImageService()


class TestAccepted:
    """Files with a valid extension and signature."""

    def test_png(self, service: ImageService, png_bytes: bytes) -> None:
        result = service.validate("a.png", png_bytes, "image/png")

        assert result.accepted is True
        assert result.reason is None
        assert result.image.name == "a.png"
        assert result.image.content == png_bytes
        assert result.image.mime_type == "image/png"

    def test_jpeg_uppercase_extension(self, service: ImageService, jpeg_bytes: bytes) -> None:
        result = service.validate("PHOTO.JPG", jpeg_bytes)

        assert result.accepted is True
        assert result.image.mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "filename, header, expected_mime",
        [
            ("scan.webp", WEBP_HEADER, "image/webp"),
            ("phone.heic", HEIC_HEADER, "image/heic"),
            ("phone.heif", MIF1_HEADER, "image/heif"),
        ],
    )
    def test_other_signatures(self, service: ImageService, filename: str, header: bytes, expected_mime: str) -> None:
        result = service.validate(filename, header)

        assert result.accepted is True
        assert result.image.detected_mime_type == expected_mime

    def test_detected_type_wins_over_declared(self, service: ImageService, png_bytes: bytes) -> None:
        result = service.validate("a.png", png_bytes, "image/jpeg")

        assert result.image.declared_mime_type == "image/jpeg"
        assert result.image.mime_type == "image/png"

    def test_dotfile_name_uses_text_after_last_dot(self, service: ImageService, png_bytes: bytes) -> None:
        result = service.validate(".png", png_bytes)

        assert result.accepted is True
        assert result.image.name == ".png"

    def test_directory_components_are_dropped(self, service: ImageService, png_bytes: bytes) -> None:
        result = service.validate("holiday/day1\\a.png", png_bytes)

        assert result.image.name == "a.png"


class TestRejected:
    """Files that never reach the OCR service."""

    @pytest.mark.parametrize("filename", ["a.png", "a.gif", "noext"])
    def test_empty_file(self, service: ImageService, filename: str) -> None:
        result = service.validate(filename, b"")

        assert result.accepted is False
        assert result.image is None
        assert result.reason is RejectionReason.EMPTY_FILE

    @pytest.mark.parametrize("filename", ["a.gif", "a.pdf", "a.png.txt", "noext", "png", "a."])
    def test_invalid_extension_regardless_of_content(
        self, service: ImageService, png_bytes: bytes, filename: str
    ) -> None:
        result = service.validate(filename, png_bytes)

        assert result.accepted is False
        assert result.reason is RejectionReason.INVALID_EXTENSION

    @pytest.mark.parametrize(
        "content",
        [
            b"\xff\xd8",
            b"\xff\xd9\xff\xe0" + b"\x00" * 8,
            b"\x89PNG\r\n\x1a",
            b"RIFF\x24\x00\x00\x00WAVEfmt ",
            b"\x00\x00\x00\x18ftypavif" + b"\x00" * 4,
            b"plain text, not an image",
        ],
    )
    def test_corrupted_header(self, service: ImageService, content: bytes) -> None:
        result = service.validate("photo.jpg", content)

        assert result.accepted is False
        assert result.reason is RejectionReason.INVALID_SIGNATURE

    def test_restricted_format_list(self, png_bytes: bytes) -> None:
        service = ImageService(supported_formats=["jpg", "jpeg"])

        assert service.validate("a.png", png_bytes).reason is RejectionReason.INVALID_EXTENSION


class TestHelpers:
    def test_sniff_mime_type_unknown(self) -> None:
        assert ImageService.sniff_mime_type(b"GIF89a") is None

    def test_has_valid_extension(self, service: ImageService) -> None:
        assert service.has_valid_extension("x.HEIF") is True
        assert service.has_valid_extension("x.bmp") is False

    def test_extract_filename(self) -> None:
        assert ImageService.extract_filename("C:\\Users\\me\\scan.png") == "scan.png"
        assert ImageService.extract_filename("scan.png") == "scan.png"
