"""Tests for PkgInfo and Info.plist generation."""

import plistlib
from unittest.mock import MagicMock

import pytest

from appbundler import (
    PKG_INFO_CONTENT,
    AppConfiguration,
    InfoPlistError,
    PkgInfoError,
    Platform,
    PlistError,
    create_app_info_plist,
    create_metadata_files,
    plist_dict,
    write_plist,
)


@pytest.fixture
def full_config():
    return AppConfiguration(
        identifier="com.example.Full",
        product="Full",
        version="2.3.1",
        category="public.app-category.utilities",
        minimum_macos_version="12.0",
        minimum_ios_version="15.0",
        plist={"CFBundleDisplayName": "Full App", "NSCustom": [1, "two"]},
    )


class TestPkgInfo:
    """Tests for the PkgInfo signature file."""

    def test_fixed_bytes(self):
        """Test the signature is APPL????."""
        assert PKG_INFO_CONTENT == bytes(
            [0x41, 0x50, 0x50, 0x4C, 0x3F, 0x3F, 0x3F, 0x3F]
        )
        assert PKG_INFO_CONTENT == b"APPL????"

    @pytest.mark.parametrize("name", ["App", "Another App", "x"])
    def test_independent_of_app(self, tmp_path, full_config, name):
        """Test PkgInfo does not depend on the app's identity."""
        create_metadata_files(tmp_path, name, full_config, Platform.IOS)
        assert (tmp_path / "PkgInfo").read_bytes() == (
            b"\x41\x50\x50\x4c\x3f\x3f\x3f\x3f"
        )

    def test_write_failure(self, tmp_path, app_config):
        """Test that a missing contents directory fails before encoding."""
        encoder = MagicMock()
        with pytest.raises(PkgInfoError) as excinfo:
            create_metadata_files(
                tmp_path / "missing", "App", app_config, Platform.MACOS, encoder
            )
        assert excinfo.value.file == tmp_path / "missing" / "PkgInfo"
        encoder.assert_not_called()


class TestInfoPlist:
    """Tests for the default metadata encoder."""

    def test_macos_defaults(self, tmp_path, app_config):
        """Test the generated macOS entries."""
        create_metadata_files(tmp_path, "App", app_config, Platform.MACOS)
        with open(tmp_path / "Info.plist", "rb") as f:
            plist = plistlib.load(f)

        assert plist["CFBundleIdentifier"] == "com.example.App"
        assert plist["CFBundleShortVersionString"] == "1.0"
        assert plist["CFBundleVersion"] == "1.0"
        assert plist["CFBundleExecutable"] == "App"
        assert plist["CFBundleName"] == "App"
        assert plist["CFBundlePackageType"] == "APPL"
        assert plist["CFBundleSignature"] == "????"
        assert plist["CFBundleIconFile"] == "AppIcon"
        assert plist["CFBundleSupportedPlatforms"] == ["MacOSX"]
        assert plist["LSMinimumSystemVersion"] == "10.13"
        assert plist["NSHighResolutionCapable"] is True
        assert "LSApplicationCategoryType" not in plist
        assert "LSRequiresIPhoneOS" not in plist

    def test_ios_entries(self, tmp_path, full_config):
        """Test iOS-specific entries use the iOS minimum version."""
        create_metadata_files(tmp_path, "Full", full_config, Platform.IOS)
        with open(tmp_path / "Info.plist", "rb") as f:
            plist = plistlib.load(f)

        assert plist["MinimumOSVersion"] == "15.0"
        assert plist["LSRequiresIPhoneOS"] is True
        assert plist["CFBundleSupportedPlatforms"] == ["iPhoneOS"]
        assert plist["LSApplicationCategoryType"] == (
            "public.app-category.utilities"
        )
        assert "LSMinimumSystemVersion" not in plist

    def test_extra_entries_override_defaults(self, tmp_path, full_config):
        """Test that configured entries win over generated ones."""
        create_metadata_files(tmp_path, "Full", full_config, Platform.MACOS)
        with open(tmp_path / "Info.plist", "rb") as f:
            plist = plistlib.load(f)

        assert plist["CFBundleDisplayName"] == "Full App"
        assert plist["NSCustom"] == [1, "two"]
        assert plist["LSMinimumSystemVersion"] == "12.0"

    def test_encoder_receives_configuration_fields(self, tmp_path, full_config):
        """Test that the encoder gets the exact configuration fields."""
        encoder = MagicMock()
        create_metadata_files(
            tmp_path, "Full", full_config, Platform.MACOS, encoder
        )
        encoder.assert_called_once_with(
            tmp_path / "Info.plist",
            app_name="Full",
            version="2.3.1",
            bundle_identifier="com.example.Full",
            category="public.app-category.utilities",
            minimum_os_version="12.0",
            extra_plist_entries=full_config.plist,
            platform=Platform.MACOS,
        )

    def test_encoder_failure_is_wrapped(self, tmp_path, app_config):
        """Test that encoder errors surface as InfoPlistError."""
        cause = PlistError("cannot encode")
        encoder = MagicMock(side_effect=cause)
        with pytest.raises(InfoPlistError) as excinfo:
            create_metadata_files(
                tmp_path, "App", app_config, Platform.MACOS, encoder
            )
        assert excinfo.value.cause is cause
        assert excinfo.value.file == tmp_path / "Info.plist"
        assert (tmp_path / "PkgInfo").exists()

    @pytest.mark.parametrize("cause", [ValueError("bad"), TypeError("bad")])
    def test_encoder_non_bundler_error_is_wrapped(
        self, tmp_path, app_config, cause
    ):
        """Test that any encoder exception surfaces as InfoPlistError."""
        encoder = MagicMock(side_effect=cause)
        with pytest.raises(InfoPlistError) as excinfo:
            create_metadata_files(
                tmp_path, "App", app_config, Platform.MACOS, encoder
            )
        assert excinfo.value.cause is cause
        assert excinfo.value.__cause__ is cause

    def test_unencodable_value(self, tmp_path):
        """Test that an unencodable extra entry fails the metadata step."""
        config = AppConfiguration(
            identifier="a.b", product="App", version="1.0", plist={"Bad": None}
        )
        with pytest.raises(InfoPlistError) as excinfo:
            create_metadata_files(tmp_path, "App", config, Platform.MACOS)
        assert isinstance(excinfo.value.cause, PlistError)
        assert not (tmp_path / "Info.plist").exists()


class TestPlistHelpers:
    """Tests for plist_dict() and write_plist()."""

    def test_plist_dict_does_not_mutate_extra_entries(self):
        """Test that extra entries are copied, not modified."""
        extra = {"A": "b"}
        entries = plist_dict(
            app_name="App",
            version="1",
            bundle_identifier="a.b",
            category=None,
            minimum_os_version=None,
            extra_plist_entries=extra,
            platform=Platform.IOS,
        )
        assert entries["A"] == "b"
        assert "MinimumOSVersion" not in entries
        assert extra == {"A": "b"}

    def test_create_app_info_plist(self, tmp_path):
        """Test writing the plist directly."""
        path = tmp_path / "Info.plist"
        create_app_info_plist(
            path,
            app_name="App",
            version="3.0",
            bundle_identifier="a.b",
            category="public.app-category.games",
            minimum_os_version="13.0",
            extra_plist_entries={},
            platform=Platform.MACOS,
        )
        assert path.read_bytes().startswith(b"<?xml")
        with open(path, "rb") as f:
            plist = plistlib.load(f)
        assert plist["LSApplicationCategoryType"] == "public.app-category.games"

    def test_write_plist_unwritable(self, tmp_path):
        """Test that write errors raise PlistError."""
        with pytest.raises(PlistError, match="Cannot write"):
            write_plist(tmp_path / "missing" / "Info.plist", {"A": "b"})
