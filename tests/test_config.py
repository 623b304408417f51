"""
Tests for stack configuration files and the provisioning context.
"""

from pathlib import Path

import pytest

from moraine.config import StackConfig, StackConfigError, load_stack_file, parse_overrides
from moraine.core.context import ProvisioningContext


class TestStackFile:
    """Tests for loading Pulumi.<stack>.yaml files."""

    def test_load(self, tmp_path):
        """Test reading values and the stack name from the file name."""
        path = tmp_path / "Pulumi.prod.yaml"
        path.write_text(
            "config:\n"
            "  gcp:project: acme-prod\n"
            "  gcp:region: europe-west3\n"
            "  moraine:buildImage: true\n"
        )

        config = load_stack_file(path)
        ctx = config.to_context(workdir=tmp_path)

        assert config.stack == "prod"
        assert ctx.stack == "prod"
        assert ctx.read_config("gcp:region") == "europe-west3"
        assert ctx.read_config("moraine:buildImage") == "true"
        assert ctx.get_bool("moraine:buildImage") is True
        assert ctx.read_config("moraine:clusterMode") is None
        assert ctx.workdir == tmp_path

    def test_non_pulumi_name(self, tmp_path):
        """Test the stack name fallback."""
        path = tmp_path / "stack.yaml"
        path.write_text("config: {}\n")

        assert load_stack_file(path).stack == "dev"

    def test_empty_file(self, tmp_path):
        """Test that an empty file is an empty configuration."""
        path = tmp_path / "Pulumi.dev.yaml"
        path.write_text("")

        assert load_stack_file(path).config == {}

    def test_missing_file(self, tmp_path):
        """Test that an unreadable file is reported."""
        with pytest.raises(StackConfigError, match="Cannot read"):
            load_stack_file(tmp_path / "Pulumi.dev.yaml")

    def test_invalid_yaml(self, tmp_path):
        """Test that malformed YAML is reported."""
        path = tmp_path / "Pulumi.dev.yaml"
        path.write_text("config: [unclosed\n")

        with pytest.raises(StackConfigError, match="not valid YAML"):
            load_stack_file(path)

    def test_not_a_mapping(self, tmp_path):
        """Test that the top level must be a mapping."""
        path = tmp_path / "Pulumi.dev.yaml"
        path.write_text("- gcp:region\n")

        with pytest.raises(StackConfigError, match="mapping"):
            load_stack_file(path)

    def test_unnamespaced_key(self, tmp_path):
        """Test that keys need a namespace."""
        path = tmp_path / "Pulumi.dev.yaml"
        path.write_text("config:\n  region: europe-west3\n")

        with pytest.raises(StackConfigError, match="namespace:key"):
            load_stack_file(path)


class TestOverrides:
    """Tests for command-line overrides."""

    def test_parse(self):
        """Test parsing key=value pairs."""
        assert parse_overrides(["gcp:region=us-east1", "moraine:image = nginx:1.27"]) == {
            "gcp:region": "us-east1",
            "moraine:image": "nginx:1.27",
        }

    def test_parse_invalid(self):
        """Test that pairs need an '='."""
        with pytest.raises(StackConfigError):
            parse_overrides(["gcp:region"])

    def test_with_overrides(self):
        """Test that overrides win over file values."""
        config = StackConfig(config={"gcp:region": "europe-west1", "gcp:project": "acme"})

        merged = config.with_overrides({"gcp:region": "us-east1"})

        assert merged.config == {"gcp:region": "us-east1", "gcp:project": "acme"}
        assert config.config["gcp:region"] == "europe-west1"

    def test_with_invalid_override(self):
        """Test that overrides are validated too."""
        with pytest.raises(ValueError):
            StackConfig().with_overrides({"region": "us-east1"})


class TestProvisioningContext:
    """Tests for ProvisioningContext."""

    def test_get_with_default(self):
        """Test defaults for unset keys."""
        ctx = ProvisioningContext.from_mapping({"gcp:region": "europe-west3"})

        assert ctx.get("gcp:region", "x") == "europe-west3"
        assert ctx.get("gcp:zone", "x") == "x"
        assert ctx.get_bool("moraine:buildImage") is False

    def test_custom_reader(self):
        """Test that any callable can back the context."""
        reads = []

        def reader(key):
            reads.append(key)
            return None

        ctx = ProvisioningContext(reader=reader)

        assert ctx.read_config("gcp:region") is None
        assert reads == ["gcp:region"]

    def test_resolve_path(self, tmp_path):
        """Test resolving configured paths against the working directory."""
        ctx = ProvisioningContext.from_mapping({}, workdir=tmp_path)

        assert ctx.resolve_path("kubeconfig.yaml") == tmp_path / "kubeconfig.yaml"
        assert ctx.resolve_path("/etc/kubeconfig") == Path("/etc/kubeconfig")

    def test_immutable(self):
        """Test that the context cannot be changed by stages."""
        ctx = ProvisioningContext.from_mapping({})

        with pytest.raises(AttributeError):
            ctx.stack = "prod"
