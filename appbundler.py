#!/usr/bin/env python3
"""appbundler - assemble macOS and iOS application bundles from build products.

This module provides tools for:
1. Reading an app's packaging intent from a ``Bundler.toml`` configuration
2. Assembling an ``.app`` bundle (executable, PkgInfo, Info.plist, icon,
   resource bundles and dynamic libraries) from a build products directory

The assembly is an ordered list of fallible steps. The first failing step
stops the run and is returned to the caller; nothing is rolled back, and the
next run starts by deleting whatever the previous one left behind.

Usage (CLI):
    # Bundle the only app declared in ./Bundler.toml
    appbundler bundle -b .build/release

    # Bundle a specific app for iOS
    appbundler bundle --app HelloWorld --platform iOS -o dist/

    # Convert a png into AppIcon.icns
    appbundler icon icon.png -o Resources/

Usage (API):
    from appbundler import AppConfiguration, Platform, assemble

    config = AppConfiguration(
        identifier="com.example.App", product="App", version="1.0"
    )
    result = assemble(
        "App", config, package_dir, products_dir, output_dir, Platform.MACOS
    )
    result.raise_for_error()
"""

import argparse
import dataclasses
import datetime
import enum
import functools
import io
import json
import logging
import os
import plistlib
import shutil
import stat
import struct
import subprocess
import sys
import tempfile
from collections.abc import Callable, Mapping
from pathlib import Path

try:
    import tomllib
except ImportError:  # Python < 3.11
    import tomli as tomllib  # type: ignore[no-redef]

from macholib.MachO import MachO
from PIL import Image, UnidentifiedImageError

# ----------------------------------------------------------------------------
# Constants

__version__ = "0.3.0"

# Type aliases
Pathlike = Path | str

# Bundle package type identifier (APPL = Application, ???? = creator code)
PKG_INFO_CONTENT = bytes([0x41, 0x50, 0x50, 0x4C, 0x3F, 0x3F, 0x3F, 0x3F])

# Name of the package configuration file
PACKAGE_CONFIG_FILE = "Bundler.toml"

# Default bundle extension
DEFAULT_BUNDLE_EXT = ".app"

# Name of the icon inside the Resources directory
APP_ICON_NAME = "AppIcon"
APP_ICON_FILE = APP_ICON_NAME + ".icns"

# Default minimum macOS version when neither config nor manifest has one
DEFAULT_MIN_SYSTEM_VERSION = "10.13"

# Default product and output directories, relative to the package root
DEFAULT_PRODUCTS_DIR = Path(".build") / "debug"
DEFAULT_OUTPUT_DIR = Path(".build") / "bundler"

# Info.plist keys that are always generated and cannot be overridden
# when importing entries from an existing plist
HANDLED_PLIST_KEYS = frozenset(
    [
        "CFBundleExecutable",
        "CFBundleIdentifier",
        "CFBundleInfoDictionaryVersion",
        "CFBundleName",
        "CFBundleDisplayName",
        "CFBundlePackageType",
        "CFBundleShortVersionString",
        "CFBundleSignature",
        "CFBundleVersion",
        "LSRequiresIPhoneOS",
    ]
)

# (type code, pixel size) pairs written into icns containers
ICNS_PNG_TYPES = [
    ("icp4", 16),
    ("icp5", 32),
    ("icp6", 64),
    ("ic07", 128),
    ("ic08", 256),
    ("ic09", 512),
    ("ic10", 1024),
]

# Base sizes of an .iconset; each also gets an @2x variant
ICONSET_SIZES = [16, 32, 128, 256, 512]


class Platform(enum.Enum):
    """A platform that bundles can be built for."""

    MACOS = "macOS"
    IOS = "iOS"

    @property
    def manifest_name(self) -> str:
        """The platform's name in a package manifest."""
        return self.value.lower()

    @property
    def plist_platform_name(self) -> str:
        """The platform's ``CFBundleSupportedPlatforms`` entry."""
        return "MacOSX" if self is Platform.MACOS else "iPhoneOS"

    @classmethod
    def parse(cls, name: str) -> "Platform":
        """Look up a platform by name, ignoring case."""
        for platform in cls:
            if name.lower() in (platform.value.lower(), platform.manifest_name):
                return platform
        choices = ", ".join(p.value for p in cls)
        raise ConfigurationError(
            f"Unknown platform '{name}' (expected one of: {choices})"
        )


# ----------------------------------------------------------------------------
# Error handling


class BundlerError(Exception):
    """Base exception class for appbundler errors."""


class CommandError(BundlerError):
    """Exception raised when a command fails."""

    def __init__(
        self, command: str, returncode: int, output: str | None = None
    ):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{command}' failed with return code {returncode}"
        )


class ConfigurationError(BundlerError):
    """Exception raised when configuration is invalid."""


class ManifestError(BundlerError):
    """Exception raised when a package manifest cannot be decoded."""


class PlistError(BundlerError):
    """Exception raised when a property list cannot be encoded or written."""


class ScaffoldError(BundlerError):
    """Exception raised when the bundle directory structure cannot be created."""

    def __init__(self, bundle_dir: Path, cause: BaseException):
        self.bundle_dir = bundle_dir
        self.cause = cause
        super().__init__(
            f"Failed to create app bundle directory structure at "
            f"{bundle_dir}: {cause}"
        )


class ExecutableCopyError(BundlerError):
    """Exception raised when the built executable cannot be copied."""

    def __init__(self, source: Path, destination: Path, cause: BaseException):
        self.source = source
        self.destination = destination
        self.cause = cause
        super().__init__(
            f"Failed to copy executable from {source} to {destination}: "
            f"{cause}"
        )


class MetadataError(BundlerError):
    """Base exception for PkgInfo and Info.plist failures."""

    def __init__(self, file: Path, cause: BaseException, what: str):
        self.file = file
        self.cause = cause
        super().__init__(f"Failed to create {what} at {file}: {cause}")


class PkgInfoError(MetadataError):
    """Exception raised when PkgInfo cannot be written."""

    def __init__(self, file: Path, cause: BaseException):
        super().__init__(file, cause, "PkgInfo")


class InfoPlistError(MetadataError):
    """Exception raised when the metadata encoder fails."""

    def __init__(self, file: Path, cause: BaseException):
        super().__init__(file, cause, "Info.plist")


class IconError(BundlerError):
    """Base exception for app icon failures."""


class InvalidIconError(IconError):
    """Exception raised when the icon is neither an icns nor a png file."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(
            f"Invalid app icon file '{path}': expected a '.icns' or '.png' file"
        )


class IconCopyError(IconError):
    """Exception raised when an icns icon cannot be copied."""

    def __init__(self, source: Path, destination: Path, cause: BaseException):
        self.source = source
        self.destination = destination
        self.cause = cause
        super().__init__(
            f"Failed to copy icon from {source} to {destination}: {cause}"
        )


class IconConversionError(IconError):
    """Exception raised when a png icon cannot be converted to icns."""

    def __init__(self, source: Path, cause: BaseException | str):
        self.source = source
        self.cause = cause
        super().__init__(f"Failed to create icns from {source}: {cause}")


class ResourceCopyError(BundlerError):
    """Exception raised when a resource bundle cannot be copied."""

    def __init__(self, bundle: Path, cause: BaseException | str):
        self.bundle = bundle
        self.cause = cause
        super().__init__(f"Failed to copy resource bundle {bundle}: {cause}")


class DynamicLibraryCopyError(BundlerError):
    """Exception raised when dynamic libraries cannot be bundled."""

    def __init__(self, path: Path, cause: BaseException | str):
        self.path = path
        self.cause = cause
        super().__init__(
            f"Failed to bundle dynamic libraries at {path}: {cause}"
        )


class BundleError(BundlerError):
    """A failed bundling run: the step that failed and its error."""

    def __init__(self, step: str, cause: BundlerError):
        self.step = step
        self.cause = cause
        super().__init__(f"Bundling failed at step '{step}': {cause}")


# ----------------------------------------------------------------------------
# Logging configuration


class CustomFormatter(logging.Formatter):
    """Custom logging formatting class with color support."""

    class color:
        """Text colors for terminal output."""

        white = "\x1b[97;20m"
        grey = "\x1b[38;20m"
        green = "\x1b[32;20m"
        yellow = "\x1b[33;20m"
        red = "\x1b[31;20m"
        bold_red = "\x1b[31;1m"
        reset = "\x1b[0m"

    cfmt = (
        f"{color.white}%(delta)s{color.reset} - "
        f"{{}}%(levelname)s{color.reset} - "
        f"{color.white}%(name)s.%(funcName)s{color.reset} - "
        f"{color.grey}%(message)s{color.reset}"
    )

    FORMATS = {
        logging.DEBUG: cfmt.format(color.grey),
        logging.INFO: cfmt.format(color.green),
        logging.WARNING: cfmt.format(color.yellow),
        logging.ERROR: cfmt.format(color.red),
        logging.CRITICAL: cfmt.format(color.bold_red),
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color
        self.fmt = (
            "%(delta)s - %(levelname)s - %(name)s.%(funcName)s - %(message)s"
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with color if enabled."""
        if not self.use_color:
            log_fmt = self.fmt
        else:
            log_fmt = self.FORMATS[record.levelno]
        duration = datetime.datetime.fromtimestamp(
            record.relativeCreated / 1000, datetime.timezone.utc
        )
        record.delta = duration.strftime("%H:%M:%S")
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def setup_logging(debug: bool = True, use_color: bool = True) -> None:
    """Configure logging for the application.

    Args:
        debug: Whether to enable debug logging
        use_color: Whether to use colored output
    """
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(CustomFormatter(use_color))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[stream_handler],
        force=True,
    )


log = logging.getLogger("appbundler")


# ----------------------------------------------------------------------------
# Command execution utilities


def run_command(
    command: list[str],
    cwd: Pathlike | None = None,
    log: logging.Logger | None = None,
) -> str:
    """Run a command and return its output.

    Uses shell=False; a non-zero exit status or a missing program is
    reported as a CommandError.

    Args:
        command: The command as a list of arguments
        cwd: Optional working directory
        log: Optional logger for debug output

    Returns:
        The command stdout output

    Raises:
        CommandError: If the command fails
    """
    cmd_str = " ".join(command)
    if log:
        log.debug("%s", cmd_str)
    try:
        result = subprocess.run(
            command,
            shell=False,
            check=True,
            text=True,
            capture_output=True,
            cwd=cwd,
        )
        return result.stdout
    except subprocess.CalledProcessError as e:
        raise CommandError(cmd_str, e.returncode, e.stderr or e.output) from e
    except FileNotFoundError as e:
        raise CommandError(cmd_str, 127, str(e)) from e


# ----------------------------------------------------------------------------
# Configuration file support


def load_config(config_path: Path | None = None) -> dict[str, object]:
    """Load command-line defaults from a TOML file.

    Searches for configuration in the following order:
    1. Explicit config_path if provided
    2. .appbundler.toml in current directory
    3. appbundler.toml in current directory

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Configuration dictionary (empty if no config found)

    Raises:
        ConfigurationError: If a config file exists but is not valid TOML

    Example .appbundler.toml:
        [bundle]
        products_dir = ".build/release"
        output_dir = "dist"
        platform = "macOS"
    """
    if config_path and config_path.exists():
        paths_to_try = [config_path]
    else:
        cwd = Path.cwd()
        paths_to_try = [
            cwd / ".appbundler.toml",
            cwd / "appbundler.toml",
        ]

    for path in paths_to_try:
        if path.exists():
            return _read_toml(path)

    return {}


def get_config_value(
    config: Mapping[str, object],
    section: str,
    key: str,
    default: str | None = None,
) -> str | None:
    """Get a value from config with section.key lookup.

    Args:
        config: Configuration dictionary
        section: Section name (e.g., "bundle")
        key: Key name within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    section_config = config.get(section, {})
    if not isinstance(section_config, dict):
        return default
    value = section_config.get(key, default)
    if value is None or isinstance(value, str):
        return value
    return default


def _read_toml(path: Path) -> dict[str, object]:
    try:
        with open(path, "rb") as f:
            data: dict[str, object] = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return data


# ----------------------------------------------------------------------------
# Package manifest


@dataclasses.dataclass(frozen=True)
class PackageManifest:
    """The decoded description of a source package.

    Only the parts used to resolve minimum OS versions are kept: the
    package's name and its ordered list of supported platforms.
    """

    name: str
    platform_versions: tuple[tuple[str, str], ...] = ()

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def platforms(self) -> list[tuple[str, str]]:
        """Ordered (platform name, minimum version) pairs."""
        return list(self.platform_versions)

    def platform_version(self, platform: Platform) -> str | None:
        """The minimum version declared for a platform, if any."""
        for name, version in self.platform_versions:
            if name == platform.manifest_name:
                return version
        return None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "PackageManifest":
        """Decode a manifest document.

        Accepts either ``{"package": {...}}`` or the package object itself,
        which is what ``swift package dump-package`` prints.
        """
        package = data.get("package", data)
        if not isinstance(package, dict):
            raise ManifestError("Manifest 'package' must be an object")

        name = package.get("name")
        if not isinstance(name, str):
            raise ManifestError("Manifest package has no 'name' string")

        entries = package.get("platforms") or []
        if not isinstance(entries, list):
            raise ManifestError("Manifest 'platforms' must be a list")

        platform_versions = []
        for entry in entries:
            try:
                platform_name = entry["platform"]["name"]
                version = entry["version"]
            except (KeyError, TypeError) as e:
                raise ManifestError(
                    f"Malformed platform entry in manifest: {entry!r}"
                ) from e
            if not isinstance(platform_name, str) or not isinstance(
                version, str
            ):
                raise ManifestError(
                    f"Malformed platform entry in manifest: {entry!r}"
                )
            platform_versions.append((platform_name, version))

        return cls(name=name, platform_versions=tuple(platform_versions))

    @classmethod
    def from_json(cls, text: str) -> "PackageManifest":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Manifest is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError("Manifest must be a JSON object")
        return cls.from_dict(data)


def load_package_manifest(package_dir: Pathlike) -> PackageManifest:
    """Evaluate a package's manifest with ``swift package dump-package``.

    Raises:
        CommandError: If swift is unavailable or the manifest does not build
        ManifestError: If the output cannot be decoded
    """
    output = run_command(
        ["swift", "package", "dump-package"], cwd=package_dir, log=log
    )
    return PackageManifest.from_json(output)


# ----------------------------------------------------------------------------
# App configuration


_APP_CONFIG_KEYS = {
    "identifier",
    "product",
    "version",
    "category",
    "minimum_macos_version",
    "minimum_ios_version",
    "icon",
    "plist",
}


@dataclasses.dataclass(frozen=True)
class AppConfiguration:
    """The configuration for one app.

    Args:
        identifier: The bundle identifier (e.g. ``com.example.ExampleApp``)
        product: Name of the executable product in the build directory
        version: The app's current version
        category: The app's ``LSApplicationCategoryType``
        minimum_macos_version: Minimum macOS version the app runs on
        minimum_ios_version: Minimum iOS version the app runs on
        icon: Path to the icon, relative to the package root
        plist: Extra entries to add to the app's Info.plist
    """

    identifier: str
    product: str
    version: str
    category: str | None = None
    minimum_macos_version: str | None = None
    minimum_ios_version: str | None = None
    icon: str | None = None
    plist: Mapping[str, object] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_dict(
        cls, data: Mapping[str, object], name: str = "app"
    ) -> "AppConfiguration":
        """Build a configuration from a decoded ``[apps.<name>]`` table."""
        unknown = set(data) - _APP_CONFIG_KEYS
        if unknown:
            raise ConfigurationError(
                f"App '{name}' has unknown keys: {', '.join(sorted(unknown))}"
            )

        values: dict[str, object] = {}
        for key in ("identifier", "product", "version"):
            if key not in data:
                raise ConfigurationError(
                    f"App '{name}' is missing required key '{key}'"
                )
        for key in _APP_CONFIG_KEYS - {"plist"}:
            if key in data:
                value = data[key]
                if not isinstance(value, str):
                    raise ConfigurationError(
                        f"App '{name}' key '{key}' must be a string"
                    )
                values[key] = value

        plist = data.get("plist", {})
        if not isinstance(plist, dict):
            raise ConfigurationError(f"App '{name}' key 'plist' must be a table")
        _check_plist_value(plist, f"apps.{name}.plist")
        values["plist"] = dict(plist)

        return cls(**values)  # type: ignore[arg-type]

    def minimum_os_version(self, platform: Platform) -> str | None:
        """The configured minimum OS version for a platform."""
        if platform is Platform.MACOS:
            return self.minimum_macos_version
        return self.minimum_ios_version

    def appending_info_plist_entries(
        self,
        entries: Mapping[str, object],
        exclude_handled_keys: bool = False,
    ) -> "AppConfiguration":
        """Return a copy with extra Info.plist entries added.

        Args:
            entries: Entries to add; they replace existing extra entries
            exclude_handled_keys: Drop entries that are always generated
        """
        if exclude_handled_keys:
            entries = {
                key: value
                for key, value in entries.items()
                if key not in HANDLED_PLIST_KEYS
                and not (key == "CFBundleDevelopmentRegion" and value == "en")
            }
        plist = dict(self.plist)
        plist.update(entries)
        return dataclasses.replace(self, plist=plist)

    def with_minimum_versions_from(
        self, manifest: PackageManifest
    ) -> "AppConfiguration":
        """Fill missing minimum OS versions from a package manifest."""
        return dataclasses.replace(
            self,
            minimum_macos_version=self.minimum_macos_version
            or manifest.platform_version(Platform.MACOS),
            minimum_ios_version=self.minimum_ios_version
            or manifest.platform_version(Platform.IOS),
        )


def _check_plist_value(value: object, where: str) -> None:
    if value is None:
        raise ConfigurationError(f"{where} cannot be empty")
    if isinstance(value, dict):
        for key, item in value.items():
            _check_plist_value(item, f"{where}.{key}")
    elif isinstance(value, list):
        for index, item in enumerate(value):
            _check_plist_value(item, f"{where}[{index}]")


@dataclasses.dataclass(frozen=True)
class PackageConfiguration:
    """The apps declared in a package's ``Bundler.toml``."""

    apps: Mapping[str, AppConfiguration]

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "PackageConfiguration":
        apps = data.get("apps", {})
        if not isinstance(apps, dict):
            raise ConfigurationError("'apps' must be a table of app tables")
        configs = {}
        for name, table in apps.items():
            if not isinstance(table, dict):
                raise ConfigurationError(f"App '{name}' must be a table")
            configs[name] = AppConfiguration.from_dict(table, name=name)
        return cls(apps=configs)

    def get_app(self, name: str | None = None) -> tuple[str, AppConfiguration]:
        """Select an app by name, or the only app if no name is given."""
        if name is None:
            if len(self.apps) != 1:
                raise ConfigurationError(
                    f"Package declares {len(self.apps)} apps; "
                    "choose one with --app"
                )
            name = next(iter(self.apps))
        try:
            return name, self.apps[name]
        except KeyError:
            raise ConfigurationError(
                f"No app named '{name}' in {PACKAGE_CONFIG_FILE}"
            ) from None


def load_package_configuration(path: Pathlike) -> PackageConfiguration:
    """Load a package configuration.

    Args:
        path: A package root containing ``Bundler.toml``, or the file itself

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    path = Path(path)
    if path.is_dir():
        path = path / PACKAGE_CONFIG_FILE
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")
    return PackageConfiguration.from_dict(_read_toml(path))


# ----------------------------------------------------------------------------
# Bundle layout


@dataclasses.dataclass(frozen=True)
class BundleLayout:
    """Canonical paths inside an app bundle for one platform.

    macOS bundles nest everything under ``Contents`` and keep the executable
    in ``Contents/MacOS``; iOS bundles are flat.
    """

    platform: Platform
    bundle: Path
    contents: Path
    executable: Path
    resources: Path
    libraries: Path

    @classmethod
    def create(
        cls, output_dir: Pathlike, app_name: str, platform: Platform
    ) -> "BundleLayout":
        bundle = Path(output_dir) / f"{app_name}{DEFAULT_BUNDLE_EXT}"
        if platform is Platform.MACOS:
            contents = bundle / "Contents"
            executable = contents / "MacOS" / app_name
        else:
            contents = bundle
            executable = bundle / app_name
        return cls(
            platform=platform,
            bundle=bundle,
            contents=contents,
            executable=executable,
            resources=contents / "Resources",
            libraries=contents / "Libraries",
        )

    @property
    def info_plist(self) -> Path:
        return self.contents / "Info.plist"

    @property
    def pkg_info(self) -> Path:
        return self.contents / "PkgInfo"

    @property
    def directories(self) -> list[Path]:
        """Directories created when scaffolding the bundle."""
        dirs = [self.resources, self.libraries]
        if self.platform is Platform.MACOS:
            dirs.insert(0, self.executable.parent)
        return dirs

    @property
    def library_install_prefix(self) -> str:
        return library_install_prefix(self.platform)


def library_install_prefix(platform: Platform) -> str:
    """Runtime path of the libraries directory, seen from the executable."""
    if platform is Platform.MACOS:
        return "@executable_path/../Libraries"
    return "@executable_path/Libraries"


# ----------------------------------------------------------------------------
# Bundle steps


def create_app_directory_structure(
    output_dir: Pathlike, app_name: str, platform: Platform
) -> BundleLayout:
    """Create the empty directory skeleton of an app bundle.

    Anything already at the bundle path is deleted first, so running this
    twice always yields the same empty skeleton.

    Raises:
        ScaffoldError: If deletion or directory creation fails
    """
    layout = BundleLayout.create(output_dir, app_name, platform)
    bundle = layout.bundle
    log.info("Creating '%s'", bundle.name)
    try:
        if bundle.is_dir() and not bundle.is_symlink():
            shutil.rmtree(bundle)
        elif bundle.exists() or bundle.is_symlink():
            bundle.unlink()
        for directory in layout.directories:
            directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ScaffoldError(bundle, e) from e
    return layout


def copy_executable(source: Pathlike, destination: Pathlike) -> None:
    """Copy the built executable into the bundle.

    The destination's parent directory must already exist.

    Raises:
        ExecutableCopyError: If the source is missing or the copy fails
    """
    source = Path(source)
    destination = Path(destination)
    log.info("Copying executable")
    try:
        if not source.is_file():
            raise FileNotFoundError(f"No such file: '{source}'")
        shutil.copy(source, destination)
        oldmode = os.stat(destination).st_mode
        os.chmod(
            destination,
            oldmode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
        )
    except OSError as e:
        raise ExecutableCopyError(source, destination, e) from e


def plist_dict(
    app_name: str,
    version: str,
    bundle_identifier: str,
    category: str | None,
    minimum_os_version: str | None,
    extra_plist_entries: Mapping[str, object],
    platform: Platform,
) -> dict[str, object]:
    """Build an app's Info.plist contents; extra entries win over defaults."""
    entries: dict[str, object] = {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleExecutable": app_name,
        "CFBundleIconFile": APP_ICON_NAME,
        "CFBundleIconName": APP_ICON_NAME,
        "CFBundleIdentifier": bundle_identifier,
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": app_name,
        "CFBundleDisplayName": app_name,
        "CFBundlePackageType": "APPL",
        "CFBundleShortVersionString": version,
        "CFBundleSignature": "????",
        "CFBundleVersion": version,
        "CFBundleSupportedPlatforms": [platform.plist_platform_name],
    }
    if category is not None:
        entries["LSApplicationCategoryType"] = category

    if platform is Platform.MACOS:
        entries["LSMinimumSystemVersion"] = (
            minimum_os_version or DEFAULT_MIN_SYSTEM_VERSION
        )
        entries["NSHighResolutionCapable"] = True
        entries["NSPrincipalClass"] = "NSApplication"
    else:
        if minimum_os_version is not None:
            entries["MinimumOSVersion"] = minimum_os_version
        entries["LSRequiresIPhoneOS"] = True
        entries["UIDeviceFamily"] = [1, 2]
        entries["UILaunchScreen"] = {}

    entries.update(extra_plist_entries)
    return entries


def write_plist(path: Pathlike, entries: Mapping[str, object]) -> None:
    """Encode entries as an XML property list and write them to path.

    Raises:
        PlistError: If a value cannot be encoded or the file cannot be written
    """
    try:
        data = plistlib.dumps(dict(entries), fmt=plistlib.FMT_XML)
    except (TypeError, ValueError, OverflowError) as e:
        raise PlistError(f"Cannot encode property list for {path}: {e}") from e
    try:
        Path(path).write_bytes(data)
    except OSError as e:
        raise PlistError(f"Cannot write {path}: {e}") from e


def create_app_info_plist(
    path: Pathlike,
    app_name: str,
    version: str,
    bundle_identifier: str,
    category: str | None,
    minimum_os_version: str | None,
    extra_plist_entries: Mapping[str, object],
    platform: Platform,
) -> None:
    """Create an app's Info.plist file."""
    write_plist(
        path,
        plist_dict(
            app_name=app_name,
            version=version,
            bundle_identifier=bundle_identifier,
            category=category,
            minimum_os_version=minimum_os_version,
            extra_plist_entries=extra_plist_entries,
            platform=platform,
        ),
    )


PlistEncoder = Callable[..., None]


def create_metadata_files(
    contents_dir: Pathlike,
    app_name: str,
    app_configuration: AppConfiguration,
    platform: Platform,
    encoder: PlistEncoder = create_app_info_plist,
) -> None:
    """Create an app's ``PkgInfo`` and ``Info.plist`` files.

    Args:
        contents_dir: The bundle's contents directory
        app_name: The app's name
        app_configuration: The app's configuration
        platform: The platform being bundled for
        encoder: Writes the Info.plist from the configuration fields

    Raises:
        PkgInfoError: If PkgInfo cannot be written
        InfoPlistError: If the encoder fails
    """
    contents_dir = Path(contents_dir)

    log.info("Creating 'PkgInfo'")
    pkg_info = contents_dir / "PkgInfo"
    try:
        pkg_info.write_bytes(PKG_INFO_CONTENT)
    except OSError as e:
        raise PkgInfoError(pkg_info, e) from e

    log.info("Creating 'Info.plist'")
    info_plist = contents_dir / "Info.plist"
    # any encoder failure is reported as InfoPlistError
    try:
        encoder(
            info_plist,
            app_name=app_name,
            version=app_configuration.version,
            bundle_identifier=app_configuration.identifier,
            category=app_configuration.category,
            minimum_os_version=app_configuration.minimum_os_version(platform),
            extra_plist_entries=app_configuration.plist,
            platform=platform,
        )
    except Exception as e:
        raise InfoPlistError(info_plist, e) from e


# ----------------------------------------------------------------------------
# App icons


class IconConversionBackend:
    """Turns a source png into ``AppIcon.icns``."""

    def create_icns(self, source: Path, output_dir: Path) -> Path:
        """Create ``output_dir/AppIcon.icns`` from source.

        Raises:
            IconConversionError: If the conversion fails
        """
        raise NotImplementedError


class PillowIconBackend(IconConversionBackend):
    """Builds a PNG-based icns container with Pillow.

    Each icon size is resized from the source with Lanczos resampling and
    stored as a PNG blob. The source should be a 1024x1024 png with an alpha
    channel; smaller sources are upscaled.
    """

    def _png_bytes(self, img: Image.Image) -> bytes:
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()

    def create_icns(self, source: Path, output_dir: Path) -> Path:
        try:
            with Image.open(source) as opened:
                img = opened.convert("RGBA")
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
        ) as e:
            raise IconConversionError(source, e) from e

        icons = []
        for type_code, px in ICNS_PNG_TYPES:
            resized = img.resize((px, px), Image.Resampling.LANCZOS)
            icons.append((type_code, self._png_bytes(resized)))

        # 8-byte header + (8-byte chunk header + data) per icon
        total = 8 + sum(8 + len(data) for _, data in icons)
        destination = Path(output_dir) / APP_ICON_FILE
        try:
            with open(destination, "wb") as f:
                f.write(b"icns")
                f.write(struct.pack(">I", total))
                for type_code, data in icons:
                    f.write(type_code.encode("ascii"))
                    f.write(struct.pack(">I", len(data) + 8))
                    f.write(data)
        except OSError as e:
            raise IconConversionError(source, e) from e
        return destination


class IconutilBackend(IconConversionBackend):
    """Builds an icns with the macOS ``sips`` and ``iconutil`` tools."""

    def run_command(self, command: list[str]) -> str:
        return run_command(command, log=log)

    def create_icns(self, source: Path, output_dir: Path) -> Path:
        destination = Path(output_dir) / APP_ICON_FILE
        with tempfile.TemporaryDirectory(prefix="appbundler.") as tmp:
            iconset = Path(tmp) / f"{APP_ICON_NAME}.iconset"
            try:
                iconset.mkdir()
                for size in ICONSET_SIZES:
                    for scale in (1, 2):
                        suffix = "@2x" if scale == 2 else ""
                        name = f"icon_{size}x{size}{suffix}.png"
                        px = str(size * scale)
                        self.run_command(
                            [
                                "sips",
                                "-z",
                                px,
                                px,
                                str(source),
                                "--out",
                                str(iconset / name),
                            ]
                        )
                self.run_command(
                    [
                        "iconutil",
                        "-c",
                        "icns",
                        str(iconset),
                        "-o",
                        str(destination),
                    ]
                )
            except (CommandError, OSError) as e:
                raise IconConversionError(source, e) from e
        return destination


ICON_BACKENDS: dict[str, type[IconConversionBackend]] = {
    "pillow": PillowIconBackend,
    "iconutil": IconutilBackend,
}


def create_app_icon(
    icon: Pathlike, resources_dir: Pathlike, backend: IconConversionBackend
) -> None:
    """Copy an icns icon, or convert a png one, to ``AppIcon.icns``.

    Only the file extension is checked; the file contents are not validated.

    Raises:
        InvalidIconError: If the icon is neither a '.icns' nor a '.png' file
        IconCopyError: If an icns icon cannot be copied
        IconConversionError: If a png icon cannot be converted
    """
    icon = Path(icon)
    resources_dir = Path(resources_dir)
    if icon.suffix == ".icns":
        log.info("Copying '%s'", icon.name)
        destination = resources_dir / APP_ICON_FILE
        try:
            shutil.copyfile(icon, destination)
        except OSError as e:
            raise IconCopyError(icon, destination, e) from e
    elif icon.suffix == ".png":
        log.info("Creating '%s' from '%s'", APP_ICON_FILE, icon.name)
        try:
            backend.create_icns(icon, resources_dir)
        except IconConversionError:
            raise
        except (BundlerError, OSError) as e:
            raise IconConversionError(icon, e) from e
    else:
        raise InvalidIconError(icon)


def create_app_icon_if_present(
    icon_path: str | None,
    package_dir: Pathlike,
    resources_dir: Pathlike,
    backend: IconConversionBackend,
) -> None:
    """Create the app icon if one is configured; otherwise do nothing."""
    if icon_path is None:
        return
    create_app_icon(Path(package_dir) / icon_path, resources_dir, backend)


# ----------------------------------------------------------------------------
# Resource bundles


def fix_resource_bundle(
    bundle: Path, platform: Platform, minimum_os_version: str | None
) -> None:
    """Give a copied resource bundle the structure its platform expects.

    macOS bundles keep their files in ``Contents/Resources``; both platforms
    need an Info.plist.
    """
    if platform is Platform.MACOS:
        contents = bundle / "Contents"
        if not contents.exists():
            resources = contents / "Resources"
            resources.mkdir(parents=True)
            for item in sorted(bundle.iterdir()):
                if item != contents:
                    shutil.move(str(item), str(resources / item.name))
        info_plist = contents / "Info.plist"
    else:
        info_plist = bundle / "Info.plist"

    if info_plist.exists():
        return

    entries: dict[str, object] = {
        "CFBundleDevelopmentRegion": "en",
        "CFBundleIdentifier": bundle.stem.replace("_", "-"),
        "CFBundleInfoDictionaryVersion": "6.0",
        "CFBundleName": bundle.stem,
        "CFBundlePackageType": "BNDL",
        "CFBundleSupportedPlatforms": [platform.plist_platform_name],
    }
    if minimum_os_version is not None:
        key = (
            "LSMinimumSystemVersion"
            if platform is Platform.MACOS
            else "MinimumOSVersion"
        )
        entries[key] = minimum_os_version
    write_plist(info_plist, entries)


def copy_resource_bundles(
    products_dir: Pathlike,
    resources_dir: Pathlike,
    fix_bundles: bool,
    minimum_os_version: str | None,
    platform: Platform,
) -> list[Path]:
    """Copy every ``*.bundle`` in the products directory into the app.

    Returns:
        The copied bundles, in the order they were copied

    Raises:
        ResourceCopyError: If the products directory cannot be read or a
            bundle cannot be copied or fixed
    """
    products_dir = Path(products_dir)
    resources_dir = Path(resources_dir)
    log.info("Copying resource bundles")
    try:
        sources = sorted(
            p
            for p in products_dir.iterdir()
            if p.suffix == ".bundle" and p.is_dir()
        )
    except OSError as e:
        raise ResourceCopyError(products_dir, e) from e

    copied = []
    for source in sources:
        destination = resources_dir / source.name
        log.debug("Copying resource bundle '%s'", source.name)
        try:
            shutil.copytree(source, destination, symlinks=True)
            if fix_bundles:
                fix_resource_bundle(destination, platform, minimum_os_version)
        except (OSError, PlistError) as e:
            raise ResourceCopyError(source, e) from e
        copied.append(destination)
    return copied


# ----------------------------------------------------------------------------
# Dynamic libraries


def list_dynamic_dependencies(binary: Pathlike) -> list[str]:
    """Return the install names a Mach-O file loads.

    Raises:
        DynamicLibraryCopyError: If the file is not a readable Mach-O file
    """
    binary = Path(binary)
    try:
        macho = MachO(str(binary))
    except (ValueError, OSError, struct.error) as e:
        raise DynamicLibraryCopyError(binary, e) from e
    names: list[str] = []
    for header in macho.headers:
        for _idx, _name, other in header.walkRelocatables():
            if other not in names:
                names.append(other)
    return names


def rewrite_install_names(binary: Pathlike, mapping: Mapping[str, str]) -> bool:
    """Point the binary's library references at new install names.

    Args:
        binary: The Mach-O file to modify in place
        mapping: Library file name -> new install name

    Returns:
        True if any load command was changed

    Raises:
        DynamicLibraryCopyError: If the binary cannot be read or written
    """
    binary = Path(binary)

    def changefunc(install_name: str) -> str | None:
        new_name = mapping.get(os.path.basename(install_name))
        if new_name is None or new_name == install_name:
            return None
        return new_name

    log.debug(
        "%s loads: %s",
        binary.name,
        ", ".join(list_dynamic_dependencies(binary)),
    )
    try:
        macho = MachO(str(binary))
        if not macho.rewriteLoadCommands(changefunc):
            return False
        with open(binary, "rb+") as f:
            macho.write(f)
    except (ValueError, OSError, struct.error) as e:
        raise DynamicLibraryCopyError(binary, e) from e
    return True


def _library_search_dirs(
    products_dir: Path,
    platform: Platform,
    is_xcode_build: bool,
    universal: bool,
) -> list[Path]:
    dirs = [products_dir]
    # xcodebuild and universal builds leave package libraries here
    if platform is Platform.MACOS and (is_xcode_build or universal):
        dirs.append(products_dir / "PackageFrameworks")
    return dirs


def copy_dynamic_libraries(
    products_dir: Pathlike,
    libraries_dir: Pathlike,
    app_executable: Pathlike,
    platform: Platform,
    is_xcode_build: bool = False,
    universal: bool = False,
) -> list[Path]:
    """Copy the products' dynamic libraries into the app.

    The app executable's references to each copied library are rewritten to
    the bundle's Libraries directory. ``is_xcode_build`` and ``universal``
    only change where libraries are searched for on macOS.

    Returns:
        The copied libraries

    Raises:
        DynamicLibraryCopyError: If a library cannot be copied or the
            executable cannot be updated
    """
    products_dir = Path(products_dir)
    libraries_dir = Path(libraries_dir)
    app_executable = Path(app_executable)
    log.info("Copying dynamic libraries")

    prefix = library_install_prefix(platform)

    copied: list[Path] = []
    mapping: dict[str, str] = {}
    for search_dir in _library_search_dirs(
        products_dir, platform, is_xcode_build, universal
    ):
        if not search_dir.is_dir():
            continue
        for library in sorted(search_dir.glob("*.dylib")):
            if library.name in mapping:
                continue
            destination = libraries_dir / library.name
            log.debug("Copying '%s'", library.name)
            try:
                shutil.copy2(library, destination)
            except OSError as e:
                raise DynamicLibraryCopyError(library, e) from e
            copied.append(destination)
            mapping[library.name] = f"{prefix}/{library.name}"

    if mapping:
        log.info("Updating library references in '%s'", app_executable.name)
        rewrite_install_names(app_executable, mapping)
    return copied


ResourceCopier = Callable[..., object]
LibraryCopier = Callable[..., object]


# ----------------------------------------------------------------------------
# Event reporting


class BundleReporter:
    """Receives progress events from a bundling run.

    The default methods do nothing; subclasses override what they need.
    """

    def step_started(self, step: str) -> None:
        pass

    def step_succeeded(self, step: str) -> None:
        pass

    def step_failed(self, step: str, error: BundlerError) -> None:
        pass

    def bundle_finished(self, result: "BundleResult") -> None:
        pass


class LoggingReporter(BundleReporter):
    """Reports bundling events to a logger."""

    def __init__(self, logger: logging.Logger | None = None):
        self.log = logger or log

    def step_started(self, step: str) -> None:
        self.log.debug("Starting step '%s'", step)

    def step_failed(self, step: str, error: BundlerError) -> None:
        self.log.error("Step '%s' failed: %s", step, error)

    def bundle_finished(self, result: "BundleResult") -> None:
        if result.ok:
            self.log.info("Bundle created successfully: %s", result.bundle)


# ----------------------------------------------------------------------------
# Bundle assembly


@dataclasses.dataclass(frozen=True)
class BundleStep:
    """One named, fallible step of the bundling pipeline."""

    name: str
    action: Callable[[], object]


@dataclasses.dataclass
class BundleResult:
    """The outcome of a bundling run.

    On failure ``error`` holds the failing step and its error, and
    ``completed_steps`` lists the steps that ran before it.
    """

    bundle: Path
    completed_steps: list[str] = dataclasses.field(default_factory=list)
    error: BundleError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed_step(self) -> str | None:
        return self.error.step if self.error else None

    def raise_for_error(self) -> Path:
        """Raise the run's BundleError, or return the bundle path."""
        if self.error is not None:
            raise self.error
        return self.bundle


def run_steps(
    steps: list[BundleStep],
    bundle: Path,
    reporter: BundleReporter,
) -> BundleResult:
    """Run steps in order, stopping at the first one that fails."""
    result = BundleResult(bundle=bundle)
    for step in steps:
        reporter.step_started(step.name)
        try:
            step.action()
        except BundlerError as e:
            reporter.step_failed(step.name, e)
            result.error = BundleError(step.name, e)
            break
        reporter.step_succeeded(step.name)
        result.completed_steps.append(step.name)
    reporter.bundle_finished(result)
    return result


def bundle_steps(
    layout: BundleLayout,
    app_name: str,
    app_configuration: AppConfiguration,
    package_dir: Path,
    products_dir: Path,
    output_dir: Path,
    is_xcode_build: bool,
    universal: bool,
    icon_backend: IconConversionBackend,
    plist_encoder: PlistEncoder,
    resource_copier: ResourceCopier,
    library_copier: LibraryCopier,
) -> list[BundleStep]:
    """The bundling pipeline for one app, in execution order."""
    platform = layout.platform
    return [
        BundleStep(
            "scaffold",
            functools.partial(
                create_app_directory_structure, output_dir, app_name, platform
            ),
        ),
        BundleStep(
            "copy-executable",
            functools.partial(
                copy_executable,
                products_dir / app_configuration.product,
                layout.executable,
            ),
        ),
        BundleStep(
            "metadata",
            functools.partial(
                create_metadata_files,
                layout.contents,
                app_name,
                app_configuration,
                platform,
                plist_encoder,
            ),
        ),
        BundleStep(
            "icon",
            functools.partial(
                create_app_icon_if_present,
                app_configuration.icon,
                package_dir,
                layout.resources,
                icon_backend,
            ),
        ),
        BundleStep(
            "resources",
            functools.partial(
                resource_copier,
                products_dir,
                layout.resources,
                fix_bundles=True,
                minimum_os_version=app_configuration.minimum_os_version(
                    platform
                ),
                platform=platform,
            ),
        ),
        BundleStep(
            "libraries",
            functools.partial(
                library_copier,
                products_dir,
                layout.libraries,
                layout.executable,
                platform=platform,
                is_xcode_build=is_xcode_build,
                universal=universal,
            ),
        ),
    ]


def assemble(
    app_name: str,
    app_configuration: AppConfiguration,
    package_dir: Pathlike,
    products_dir: Pathlike,
    output_dir: Pathlike,
    platform: Platform = Platform.MACOS,
    is_xcode_build: bool = False,
    universal: bool = False,
    *,
    reporter: BundleReporter | None = None,
    icon_backend: IconConversionBackend | None = None,
    plist_encoder: PlistEncoder = create_app_info_plist,
    resource_copier: ResourceCopier = copy_resource_bundles,
    library_copier: LibraryCopier = copy_dynamic_libraries,
) -> BundleResult:
    """Bundle a built executable and its resources into an app.

    Steps run in a fixed order: scaffold, copy-executable, metadata, icon,
    resources, libraries. The first failure stops the run and is returned
    in the result; whatever earlier steps wrote stays on disk.

    Args:
        app_name: The name to give the bundled app
        app_configuration: The app's configuration
        package_dir: The root of the package containing the app
        products_dir: The directory containing the build products
        output_dir: The directory to output the app into
        platform: The platform to bundle for
        is_xcode_build: The products come from xcodebuild (macOS only)
        universal: The products are universal binaries (macOS only)
        reporter: Receives progress events (default: LoggingReporter)
        icon_backend: Converts png icons (default: PillowIconBackend)
        plist_encoder: Writes Info.plist
        resource_copier: Copies resource bundles
        library_copier: Copies dynamic libraries

    Returns:
        The bundling result

    Raises:
        ConfigurationError: If app_name is empty
    """
    if not app_name:
        raise ConfigurationError("App name cannot be empty")

    package_dir = Path(package_dir)
    products_dir = Path(products_dir)
    output_dir = Path(output_dir)
    reporter = reporter or LoggingReporter()

    layout = BundleLayout.create(output_dir, app_name, platform)
    log.info("Bundling '%s'", layout.bundle.name)

    steps = bundle_steps(
        layout,
        app_name,
        app_configuration,
        package_dir,
        products_dir,
        output_dir,
        is_xcode_build,
        universal,
        icon_backend or PillowIconBackend(),
        plist_encoder,
        resource_copier,
        library_copier,
    )
    return run_steps(steps, layout.bundle, reporter)


# ----------------------------------------------------------------------------
# Functional API


def make_bundle(
    package_dir: Pathlike,
    products_dir: Pathlike | None = None,
    output_dir: Pathlike | None = None,
    app_name: str | None = None,
    platform: Platform = Platform.MACOS,
    config_path: Pathlike | None = None,
    manifest: PackageManifest | None = None,
    is_xcode_build: bool = False,
    universal: bool = False,
    icon_backend: IconConversionBackend | None = None,
) -> Path:
    """Bundle an app declared in a package's ``Bundler.toml``.

    This is a convenience function that loads the configuration, resolves
    minimum OS versions from a manifest when one is given, and calls
    assemble().

    Args:
        package_dir: The package root
        products_dir: Build products (default: <package>/.build/debug)
        output_dir: Where to put the app (default: products_dir)
        app_name: Which app to bundle (default: the only one declared)
        platform: The platform to bundle for
        config_path: Explicit Bundler.toml path
        manifest: Package manifest used to fill minimum OS versions
        is_xcode_build: The products come from xcodebuild
        universal: The products are universal binaries
        icon_backend: Converts png icons

    Returns:
        Path to the created bundle

    Raises:
        ConfigurationError: If the configuration is missing or invalid
        BundleError: If a bundling step fails

    Example:
        bundle_path = make_bundle(".", ".build/release")
    """
    package_dir = Path(package_dir)
    products_dir = (
        Path(products_dir) if products_dir else package_dir / DEFAULT_PRODUCTS_DIR
    )
    output_dir = Path(output_dir) if output_dir else products_dir

    package_config = load_package_configuration(config_path or package_dir)
    name, app_configuration = package_config.get_app(app_name)
    if manifest is not None:
        app_configuration = app_configuration.with_minimum_versions_from(
            manifest
        )

    result = assemble(
        name,
        app_configuration,
        package_dir,
        products_dir,
        output_dir,
        platform,
        is_xcode_build,
        universal,
        icon_backend=icon_backend,
    )
    return result.raise_for_error()


# ----------------------------------------------------------------------------
# Command-line interface


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Add common options to a parser."""
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="disable colored output",
    )


def _cmd_bundle(args: argparse.Namespace) -> None:
    """Handle 'bundle' subcommand."""
    setup_logging(args.verbose, not args.no_color)

    config = load_config()
    package_dir = Path(args.package_dir)
    products_dir = args.products_dir or get_config_value(
        config, "bundle", "products_dir"
    )
    output_dir = args.output_dir or get_config_value(
        config, "bundle", "output_dir"
    )
    platform_name = args.platform or get_config_value(
        config, "bundle", "platform", Platform.MACOS.value
    )
    platform = Platform.parse(platform_name or Platform.MACOS.value)

    # relative paths are taken from the package root
    products = package_dir / (products_dir or DEFAULT_PRODUCTS_DIR)
    output = package_dir / (output_dir or DEFAULT_OUTPUT_DIR)

    manifest = None
    if args.manifest:
        try:
            text = Path(args.manifest).read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Cannot read {args.manifest}: {e}") from e
        manifest = PackageManifest.from_json(text)
    elif args.dump_manifest:
        manifest = load_package_manifest(package_dir)

    bundle_path = make_bundle(
        package_dir,
        products,
        output,
        app_name=args.app,
        platform=platform,
        config_path=args.config,
        manifest=manifest,
        is_xcode_build=args.xcodebuild,
        universal=args.universal,
    )
    log.info("Created: %s", bundle_path)


def _cmd_icon(args: argparse.Namespace) -> None:
    """Handle 'icon' subcommand."""
    setup_logging(args.verbose, not args.no_color)

    output_dir = Path(args.output) if args.output else Path.cwd()
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise IconError(
            f"Cannot create output directory {output_dir}: {e}"
        ) from e
    backend = ICON_BACKENDS[args.backend]()
    create_app_icon(Path(args.source), output_dir, backend)
    log.info("Created: %s", output_dir / APP_ICON_FILE)


def main(argv: list[str] | None = None) -> None:
    """Command line interface for appbundler."""
    try:
        parser = argparse.ArgumentParser(
            prog="appbundler",
            description="Assemble macOS and iOS app bundles from build products.",
            epilog=(
                "Examples:\n"
                "  appbundler bundle\n"
                "  appbundler bundle --app HelloWorld -b .build/release\n"
                "  appbundler icon icon.png -o Resources/\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {__version__}",
        )

        subparsers = parser.add_subparsers(
            title="commands",
            dest="command",
            required=True,
        )

        # --- bundle subcommand ---
        bundle_parser = subparsers.add_parser(
            "bundle",
            help="bundle an app declared in Bundler.toml",
            description="Bundle a built executable into an .app bundle.",
            epilog=(
                "Examples:\n"
                "  appbundler bundle\n"
                "  appbundler bundle --app HelloWorld --platform iOS\n"
                "  appbundler bundle -p path/to/package -o dist/\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        bundle_parser.add_argument(
            "-a",
            "--app",
            metavar="NAME",
            help="app to bundle (default: the only app in Bundler.toml)",
        )
        bundle_parser.add_argument(
            "-p",
            "--package-dir",
            default=".",
            metavar="DIR",
            help="package root containing Bundler.toml (default: .)",
        )
        bundle_parser.add_argument(
            "-c",
            "--config",
            metavar="FILE",
            help="path to Bundler.toml (default: <package>/Bundler.toml)",
        )
        bundle_parser.add_argument(
            "-b",
            "--products-dir",
            metavar="DIR",
            help=f"build products directory (default: {DEFAULT_PRODUCTS_DIR})",
        )
        bundle_parser.add_argument(
            "-o",
            "--output-dir",
            metavar="DIR",
            help=f"output directory (default: {DEFAULT_OUTPUT_DIR})",
        )
        bundle_parser.add_argument(
            "--platform",
            choices=[p.value for p in Platform],
            help=f"platform to bundle for (default: {Platform.MACOS.value})",
        )
        manifest_group = bundle_parser.add_mutually_exclusive_group()
        manifest_group.add_argument(
            "--manifest",
            metavar="FILE",
            help="package manifest JSON used to resolve minimum OS versions",
        )
        manifest_group.add_argument(
            "--dump-manifest",
            action="store_true",
            help="read the manifest with 'swift package dump-package'",
        )
        bundle_parser.add_argument(
            "--xcodebuild",
            action="store_true",
            help="products were built with xcodebuild (macOS only)",
        )
        bundle_parser.add_argument(
            "--universal",
            action="store_true",
            help="products are universal binaries (macOS only)",
        )
        _add_common_options(bundle_parser)
        bundle_parser.set_defaults(func=_cmd_bundle)

        # --- icon subcommand ---
        icon_parser = subparsers.add_parser(
            "icon",
            help="create AppIcon.icns from a png or icns file",
            description="Create AppIcon.icns from a png or icns file.",
        )
        icon_parser.add_argument(
            "source",
            help="icon source (.png or .icns)",
        )
        icon_parser.add_argument(
            "-o",
            "--output",
            metavar="DIR",
            help="output directory (default: current directory)",
        )
        icon_parser.add_argument(
            "--backend",
            choices=sorted(ICON_BACKENDS),
            default="pillow",
            help="png conversion backend (default: pillow)",
        )
        _add_common_options(icon_parser)
        icon_parser.set_defaults(func=_cmd_icon)

        args = parser.parse_args(argv)
        args.func(args)

    except BundlerError as e:
        logging.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
