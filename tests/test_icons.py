"""Tests for app icon resolution and conversion backends."""

import struct
from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from appbundler import (
    APP_ICON_FILE,
    ICNS_PNG_TYPES,
    CommandError,
    IconConversionBackend,
    IconConversionError,
    IconCopyError,
    IconutilBackend,
    InvalidIconError,
    PillowIconBackend,
    create_app_icon,
    create_app_icon_if_present,
)


@pytest.fixture
def resources_dir(tmp_path):
    path = tmp_path / "Resources"
    path.mkdir()
    return path


def parse_icns(data):
    """Return the type codes of an icns container."""
    assert data[:4] == b"icns"
    assert struct.unpack(">I", data[4:8])[0] == len(data)
    codes = []
    offset = 8
    while offset < len(data):
        code = data[offset : offset + 4].decode("ascii")
        length = struct.unpack(">I", data[offset + 4 : offset + 8])[0]
        assert data[offset + 8 : offset + 16] == b"\x89PNG\r\n\x1a\n"
        codes.append(code)
        offset += length
    assert offset == len(data)
    return codes


class TestCreateAppIcon:
    """Tests for extension-based icon dispatch."""

    def test_icns_copied_verbatim(self, tmp_path, resources_dir):
        """Test that an icns file is copied to AppIcon.icns."""
        icon = tmp_path / "MyIcon.icns"
        icon.write_bytes(b"not really icns")
        backend = MagicMock(spec=IconConversionBackend)

        create_app_icon(icon, resources_dir, backend)

        assert (resources_dir / APP_ICON_FILE).read_bytes() == b"not really icns"
        backend.create_icns.assert_not_called()

    def test_icns_missing(self, tmp_path, resources_dir):
        """Test that a missing icns file raises IconCopyError."""
        icon = tmp_path / "missing.icns"
        with pytest.raises(IconCopyError) as excinfo:
            create_app_icon(icon, resources_dir, PillowIconBackend())
        assert excinfo.value.source == icon
        assert excinfo.value.destination == resources_dir / APP_ICON_FILE

    def test_png_delegates_to_backend(self, tmp_path, resources_dir):
        """Test that a png is handed to the conversion backend."""
        icon = tmp_path / "icon.png"
        backend = MagicMock(spec=IconConversionBackend)

        create_app_icon(icon, resources_dir, backend)

        backend.create_icns.assert_called_once_with(icon, resources_dir)

    def test_backend_error_is_propagated(self, tmp_path, resources_dir):
        """Test that backend failures surface as IconConversionError."""
        icon = tmp_path / "icon.png"
        backend = MagicMock(spec=IconConversionBackend)
        backend.create_icns.side_effect = IconConversionError(icon, "boom")

        with pytest.raises(IconConversionError, match="boom"):
            create_app_icon(icon, resources_dir, backend)

    def test_backend_os_error_is_wrapped(self, tmp_path, resources_dir):
        """Test that stray I/O errors from a backend are wrapped."""
        icon = tmp_path / "icon.png"
        backend = MagicMock(spec=IconConversionBackend)
        backend.create_icns.side_effect = OSError("disk full")

        with pytest.raises(IconConversionError) as excinfo:
            create_app_icon(icon, resources_dir, backend)
        assert excinfo.value.source == icon

    @pytest.mark.parametrize(
        "name", ["icon.jpg", "icon", "icon.PNG", "icon.ICNS", "icon.png.bak"]
    )
    def test_invalid_extension(self, tmp_path, resources_dir, name):
        """Test that other extensions fail without any I/O."""
        icon = tmp_path / name
        backend = MagicMock(spec=IconConversionBackend)

        with pytest.raises(InvalidIconError) as excinfo:
            create_app_icon(icon, resources_dir, backend)

        assert excinfo.value.path == icon
        assert name in str(excinfo.value)
        backend.create_icns.assert_not_called()
        assert list(resources_dir.iterdir()) == []


class TestCreateAppIconIfPresent:
    """Tests for the optional icon step."""

    def test_no_icon_is_success(self, package_dir, resources_dir):
        """Test that no configured icon writes nothing."""
        backend = MagicMock(spec=IconConversionBackend)
        create_app_icon_if_present(None, package_dir, resources_dir, backend)
        assert not (resources_dir / APP_ICON_FILE).exists()
        backend.create_icns.assert_not_called()

    def test_icon_relative_to_package(self, package_dir, resources_dir):
        """Test that the icon path is resolved against the package root."""
        (package_dir / "assets").mkdir()
        (package_dir / "assets" / "app.icns").write_bytes(b"icns data")
        create_app_icon_if_present(
            "assets/app.icns", package_dir, resources_dir, PillowIconBackend()
        )
        assert (resources_dir / APP_ICON_FILE).read_bytes() == b"icns data"


class TestPillowIconBackend:
    """Tests for the Pillow icns writer."""

    def test_creates_icns(self, tmp_path, resources_dir, make_png):
        """Test that all icon sizes are written as PNG entries."""
        source = make_png(tmp_path / "icon.png", size=64)

        result = PillowIconBackend().create_icns(source, resources_dir)

        assert result == resources_dir / APP_ICON_FILE
        codes = parse_icns(result.read_bytes())
        assert codes == [code for code, _ in ICNS_PNG_TYPES]

    def test_not_an_image(self, tmp_path, resources_dir):
        """Test that an unreadable png raises IconConversionError."""
        source = tmp_path / "icon.png"
        source.write_text("definitely not a png")
        with pytest.raises(IconConversionError) as excinfo:
            PillowIconBackend().create_icns(source, resources_dir)
        assert excinfo.value.source == source
        assert not (resources_dir / APP_ICON_FILE).exists()

    def test_decompression_bomb(
        self, tmp_path, resources_dir, make_png, monkeypatch
    ):
        """Test that images over the pixel limit raise IconConversionError."""
        source = make_png(tmp_path / "icon.png", size=64)
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(IconConversionError) as excinfo:
            PillowIconBackend().create_icns(source, resources_dir)
        assert isinstance(excinfo.value.cause, Image.DecompressionBombError)
        assert not (resources_dir / APP_ICON_FILE).exists()

    def test_missing_source(self, tmp_path, resources_dir):
        """Test that a missing png raises IconConversionError."""
        with pytest.raises(IconConversionError):
            PillowIconBackend().create_icns(
                tmp_path / "missing.png", resources_dir
            )


class TestIconutilBackend:
    """Tests for the sips/iconutil backend (commands mocked)."""

    def test_commands(self, tmp_path, resources_dir):
        """Test that every iconset size is rendered before iconutil runs."""
        source = tmp_path / "icon.png"
        with patch.object(IconutilBackend, "run_command") as mock_run:
            result = IconutilBackend().create_icns(source, resources_dir)

        assert result == resources_dir / APP_ICON_FILE
        commands = [c.args[0] for c in mock_run.call_args_list]
        assert len(commands) == 11
        sips = commands[:-1]
        assert all(c[0] == "sips" and c[4] == str(source) for c in sips)
        names = sorted(c[-1].rsplit("/", 1)[-1] for c in sips)
        assert "icon_16x16.png" in names
        assert "icon_512x512@2x.png" in names
        assert ["1024", "1024"] in [c[2:4] for c in sips]
        iconutil = commands[-1]
        assert iconutil[:3] == ["iconutil", "-c", "icns"]
        assert iconutil[3].endswith("AppIcon.iconset")
        assert iconutil[-1] == str(resources_dir / APP_ICON_FILE)

    def test_command_failure(self, tmp_path, resources_dir):
        """Test that tool failures raise IconConversionError."""
        source = tmp_path / "icon.png"
        with patch.object(
            IconutilBackend,
            "run_command",
            side_effect=CommandError("sips", 1, "bad image"),
        ):
            with pytest.raises(IconConversionError) as excinfo:
                IconutilBackend().create_icns(source, resources_dir)
        assert isinstance(excinfo.value.cause, CommandError)
