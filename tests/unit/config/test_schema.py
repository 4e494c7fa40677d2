"""Test configuration schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from monopub.config import (
    DEFAULT_STATE_FILE,
    MonopubConfig,
    PublishConfig,
    RetryConfig,
    find_config,
    load_config,
)
from monopub.errors import ConfigurationError, ErrorKind
from monopub.execution import SchedulerOptions


class TestSchema:
    def test_defaults(self):
        config = MonopubConfig()

        assert config.packages == ["packages/*"]
        assert config.publish.max_concurrency == 4
        assert config.publish.fail_fast is False
        assert config.publish.auto_sync is False
        assert config.publish.state_file == DEFAULT_STATE_FILE
        assert config.publish.retry.max_attempts == 1
        assert config.publish.retry.auto_recoverable_error_kinds == [ErrorKind.TIMEOUT]

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            PublishConfig(max_concurency=2)

    def test_concurrency_must_be_positive(self):
        with pytest.raises(ValidationError):
            PublishConfig(max_concurrency=0)

    def test_blank_remote_rejected(self):
        with pytest.raises(ValidationError, match="must not be blank"):
            PublishConfig(remote="  ")

    def test_unknown_error_kind_rejected(self):
        with pytest.raises(ValidationError):
            RetryConfig(auto_recoverable_error_kinds=["gremlins"])

    def test_scheduler_options_from_config(self):
        config = PublishConfig(
            max_concurrency=3,
            fail_fast=True,
            task_timeout=30,
            working_branch="release",
            retry=RetryConfig(max_attempts=2),
        )

        options = SchedulerOptions.from_config(config, concurrency_limit=1)

        assert options.concurrency_limit == 1
        assert options.fail_fast is True
        assert options.task_timeout == 30
        assert options.working_branch == "release"
        assert options.target_branch == "main"
        assert options.retry.max_attempts == 2


class TestLoader:
    def test_load_config(self, temp_dir: Path, sample_monopub_yaml: str):
        path = temp_dir / "monopub.yaml"
        path.write_text(sample_monopub_yaml)

        config = load_config(path)

        assert config.name == "test-workspace"
        assert config.publish.max_concurrency == 2
        assert config.publish.retry.max_attempts == 2
        assert config.publish.retry.delay == 0

    def test_empty_file_uses_defaults(self, temp_dir: Path):
        path = temp_dir / "monopub.yaml"
        path.write_text("")

        assert load_config(path) == MonopubConfig()

    def test_invalid_yaml(self, temp_dir: Path):
        path = temp_dir / "monopub.yaml"
        path.write_text("publish: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, temp_dir: Path):
        path = temp_dir / "monopub.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must be a mapping"):
            load_config(path)

    def test_invalid_values(self, temp_dir: Path):
        path = temp_dir / "monopub.yaml"
        path.write_text("publish:\n  max_concurrency: -1\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            load_config(path)

        assert exc_info.value.path == path

    def test_missing_file(self, temp_dir: Path):
        with pytest.raises(ConfigurationError, match="Cannot read configuration"):
            load_config(temp_dir / "monopub.yaml")

    def test_find_config_walks_up(self, temp_dir: Path):
        (temp_dir / "monopub.yaml").write_text("")
        nested = temp_dir / "packages" / "pkg-a"
        nested.mkdir(parents=True)

        assert find_config(nested) == (temp_dir / "monopub.yaml").resolve()
