"""Tests for manifest sources."""

from pathlib import Path

import pytest

from mycoq.core.errors import ManifestInvalid, ManifestNotFound
from mycoq.core.manifest import (
    ManifestSource,
    ServiceManifest,
    StaticManifestSource,
    YamlManifestSource,
    parse_manifest,
)


class TestParseManifest:
    def test_string_dependencies(self):
        manifest = parse_manifest(
            "payment-service",
            {"name": "payment-service", "dependencies": ["auth-lib", "log-lib"]},
            Path("m.yaml"),
        )
        assert manifest.dependencies == ("auth-lib", "log-lib")
        assert manifest.entry_point is None

    def test_mapping_dependencies(self):
        manifest = parse_manifest(
            "payment-service",
            {"dependencies": [{"name": "auth-lib", "version": "1.0"}, "log-lib"]},
            Path("m.yaml"),
        )
        assert manifest.dependencies == ("auth-lib", "log-lib")

    def test_entry_point_and_config(self):
        manifest = parse_manifest(
            "payment-service",
            {"entryPoint": "payments.app.PaymentApp", "config": {"port": 8081}},
            Path("m.yaml"),
        )
        assert manifest.entry_point == "payments.app.PaymentApp"
        assert manifest.config == {"port": "8081"}

    def test_empty_document(self):
        manifest = parse_manifest("payment-service", None, Path("m.yaml"))
        assert manifest == ServiceManifest(name="payment-service")

    @pytest.mark.parametrize(
        "data",
        [
            ["not", "a", "mapping"],
            {"dependencies": "auth-lib"},
            {"dependencies": [42]},
            {"entryPoint": 7},
            {"config": ["a"]},
        ],
    )
    def test_invalid_shapes(self, data):
        with pytest.raises(ManifestInvalid):
            parse_manifest("payment-service", data, Path("m.yaml"))


class TestYamlManifestSource:
    def test_load(self, workspace, write_manifest):
        write_manifest("payment-service", dependencies=["auth-lib"])
        source = YamlManifestSource(workspace / "manifests")
        manifest = source.load("payment-service")
        assert manifest.name == "payment-service"
        assert manifest.dependencies == ("auth-lib",)

    def test_missing_manifest(self, workspace):
        source = YamlManifestSource(workspace / "manifests")
        with pytest.raises(ManifestNotFound) as exc_info:
            source.load("ghost-service")
        assert "ghost-service.yaml" in str(exc_info.value)

    def test_invalid_yaml(self, workspace):
        (workspace / "manifests" / "broken-service.yaml").write_text("dependencies: [a, b\n")
        with pytest.raises(ManifestInvalid):
            YamlManifestSource(workspace / "manifests").load("broken-service")

    def test_satisfies_protocol(self, workspace):
        assert isinstance(YamlManifestSource(workspace), ManifestSource)


class TestStaticManifestSource:
    def test_lists_become_manifests(self):
        source = StaticManifestSource({"payment-service": ["auth-lib"]})
        assert source.load("payment-service").dependencies == ("auth-lib",)

    def test_add_manifest(self):
        source = StaticManifestSource()
        source.add("user-service", ServiceManifest(name="user-service", entry_point="users.UserApp"))
        assert source.load("user-service").entry_point == "users.UserApp"

    def test_missing(self):
        with pytest.raises(ManifestNotFound):
            StaticManifestSource().load("ghost-service")
