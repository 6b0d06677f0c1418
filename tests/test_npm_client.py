import asyncio

import httpx
import pytest

from npmscore.adapters.npm import NpmRegistryClient
from npmscore.core.errors import PackageNotFoundError, RegistryError

PACKUMENT = {
    "name": "@acme/widget",
    "description": "Widgets",
    "dist-tags": {"latest": "2.0.0"},
    "maintainers": [{"name": "alice", "email": "alice@example.com"}],
    "repository": {"type": "git", "url": "git+https://github.com/acme/widget.git"},
    "license": "MIT",
    "versions": {
        "1.0.0": {
            "name": "@acme/widget",
            "version": "1.0.0",
            "licenses": [{"type": "BSD", "url": "https://example.com"}],
            "dist": {"tarball": "https://registry.npmjs.org/@acme/widget/-/widget-1.0.0.tgz"},
        },
        "2.0.0": {
            "name": "@acme/widget",
            "version": "2.0.0",
            "scripts": {"postinstall": "node setup.js"},
            "dependencies": {"axios": "^1.6.0"},
            "_npmUser": {"name": "alice", "email": "alice@example.com"},
            "dist": {
                "tarball": "https://registry.npmjs.org/@acme/widget/-/widget-2.0.0.tgz",
                "unpackedSize": 4096,
                "fileCount": 5,
                "signatures": [{"keyid": "SHA256:abc", "sig": "MEUCIQ"}],
            },
        },
    },
}


def _run(body, handler, **kwargs):
    async def main():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await body(NpmRegistryClient(client=client, **kwargs))

    return asyncio.run(main())


def _serve(payload=PACKUMENT, status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)

    return handler


def test_latest_version_metadata():
    seen = []
    metadata = _run(lambda c: c.get_package_metadata("@acme/widget"), _serve(seen=seen))

    assert seen[0].url.raw_path == b"/@acme%2Fwidget"
    assert metadata.name == "@acme/widget"
    assert metadata.version == "2.0.0"
    assert metadata.scripts == {"postinstall": "node setup.js"}
    assert metadata.dependencies == {"axios": "^1.6.0"}
    assert metadata.dist.unpacked_size == 4096
    assert metadata.dist.file_count == 5
    assert metadata.dist.signatures
    assert metadata.npm_user.name == "alice"


def test_falls_back_to_package_level_fields():
    metadata = _run(lambda c: c.get_package_metadata("@acme/widget", "1.0.0"), _serve())

    assert metadata.version == "1.0.0"
    assert metadata.maintainers == [{"name": "alice", "email": "alice@example.com"}]
    assert metadata.description == "Widgets"
    assert metadata.license == {"type": "BSD", "url": "https://example.com"}
    assert metadata.dist.unpacked_size == 0


def test_custom_registry_url():
    seen = []
    _run(
        lambda c: c.get_package_metadata("@acme/widget"),
        _serve(seen=seen),
        registry_url="https://npm.internal.example/",
    )
    assert str(seen[0].url).startswith("https://npm.internal.example/@acme")


def test_unknown_package():
    with pytest.raises(PackageNotFoundError) as exc:
        _run(lambda c: c.get_package_metadata("nope"), _serve({"error": "Not found"}, status=404))
    assert exc.value.name == "nope"


def test_unknown_version():
    with pytest.raises(PackageNotFoundError, match="9.9.9"):
        _run(lambda c: c.get_package_metadata("@acme/widget", "9.9.9"), _serve())


def test_server_error():
    with pytest.raises(RegistryError, match="503"):
        _run(lambda c: c.get_package_metadata("x"), _serve({}, status=503))


def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RegistryError):
        _run(lambda c: c.get_package_metadata("x"), handler)


def test_invalid_json():
    def handler(request):
        return httpx.Response(200, content=b"<html>")

    with pytest.raises(RegistryError, match="invalid JSON"):
        _run(lambda c: c.get_package_metadata("x"), handler)


def test_package_not_found_is_a_registry_error():
    assert issubclass(PackageNotFoundError, RegistryError)


def test_get_all_versions():
    assert _run(lambda c: c.get_all_versions("@acme/widget"), _serve()) == ["1.0.0", "2.0.0"]


def test_get_tarball_url():
    url = _run(lambda c: c.get_tarball_url("@acme/widget", "1.0.0"), _serve())
    assert url == "https://registry.npmjs.org/@acme/widget/-/widget-1.0.0.tgz"
