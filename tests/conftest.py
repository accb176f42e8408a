"""Shared fixtures for appbundler tests."""

from pathlib import Path

import pytest
from PIL import Image

from appbundler import AppConfiguration, BundleReporter


def create_png(path: Path, size: int = 32) -> Path:
    """Write a small RGBA png."""
    Image.new("RGBA", (size, size), (255, 0, 0, 128)).save(path, format="PNG")
    return path


class RecordingReporter(BundleReporter):
    """Collects bundling events for assertions."""

    def __init__(self):
        self.events = []
        self.result = None

    def step_started(self, step):
        self.events.append(("started", step))

    def step_succeeded(self, step):
        self.events.append(("succeeded", step))

    def step_failed(self, step, error):
        self.events.append(("failed", step))

    def bundle_finished(self, result):
        self.events.append(("finished", result.ok))
        self.result = result


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """An empty package root."""
    path = tmp_path / "package"
    path.mkdir()
    return path


@pytest.fixture
def products_dir(tmp_path: Path) -> Path:
    """A build products directory containing an executable named App."""
    path = tmp_path / "products"
    path.mkdir()
    exe = path / "App"
    exe.write_bytes(b"#!/bin/sh\necho hello\n")
    exe.chmod(0o755)
    return path


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    path = tmp_path / "output"
    path.mkdir()
    return path


@pytest.fixture
def app_config() -> AppConfiguration:
    return AppConfiguration(
        identifier="com.example.App",
        product="App",
        version="1.0",
    )


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def make_png():
    """Factory writing small png files."""
    return create_png
