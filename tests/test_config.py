from pathlib import Path

import pytest

from tagsweep.config import DEFAULT_TIMEOUT, Args, Config, load_config
from tagsweep.errors import ConfigurationError, InvalidPatternError
from tagsweep.models import SortMode


def test_args_from_args_defaults():
    args = Args.from_args(["-r", "https://registry.example.com/", "-m", "3"])

    assert args.registry_url == "https://registry.example.com/"
    assert args.max_per_tag == 3
    assert args.tags == []
    assert args.images == []
    assert args.semver is False
    assert args.delete is False
    assert args.report is None


def test_args_from_args_repeatable_patterns():
    args = Args.from_args(
        [
            "--registry-url",
            "https://registry.example.com",
            "--max-per-tag",
            "5",
            "-t",
            r"^dev-",
            "--tags",
            r"^v\d",
            "-i",
            "library/.*",
            "-s",
            "-d",
            "--report",
            "out/report.json",
        ]
    )

    assert args.tags == [r"^dev-", r"^v\d"]
    assert args.images == ["library/.*"]
    assert args.semver is True
    assert args.delete is True
    assert args.report == Path("out/report.json")


def test_args_requires_max_per_tag():
    with pytest.raises(SystemExit):
        Args.from_args(["-r", "https://registry.example.com"])


def test_load_config():
    args = Args(
        registry_url="https://registry.example.com/",
        max_per_tag=2,
        tags=[r"^dev-"],
        images=["app"],
        semver=True,
    )
    config = load_config(args)

    assert isinstance(config, Config)
    assert config.registry_url == "https://registry.example.com/v2"
    assert [rule.pattern for rule in config.tag_rules] == [r"^dev-"]
    assert [rule.pattern for rule in config.image_rules] == ["app"]
    assert config.sort_mode == SortMode.SEMVER
    assert config.delete is False


def test_load_config_rejects_non_positive_max_per_tag():
    with pytest.raises(ConfigurationError):
        load_config(Args(registry_url="https://registry.example.com", max_per_tag=0))


def test_load_config_rejects_invalid_patterns():
    with pytest.raises(InvalidPatternError) as exc_info:
        load_config(
            Args(registry_url="https://registry.example.com", max_per_tag=1, images=["[a-"])
        )
    assert exc_info.value.pattern == "[a-"


def test_load_config_rejects_bad_registry_url():
    with pytest.raises(ConfigurationError):
        load_config(Args(registry_url="registry.example.com", max_per_tag=1))


def test_credentials_from_env(monkeypatch):
    monkeypatch.setenv("SWEEP_USER", "robot")
    monkeypatch.setenv("SWEEP_PASS", "hunter2")
    config = load_config(
        Args(
            registry_url="https://registry.example.com",
            max_per_tag=1,
            registry_user="__ENV: SWEEP_USER",
            registry_password="__ENV:SWEEP_PASS",
        )
    )

    assert config.username == "robot"
    assert config.password == "hunter2"


def test_credentials_from_missing_env(monkeypatch):
    monkeypatch.delenv("SWEEP_MISSING", raising=False)
    with pytest.raises(ConfigurationError):
        load_config(
            Args(
                registry_url="https://registry.example.com",
                max_per_tag=1,
                registry_user="__ENV: SWEEP_MISSING",
            )
        )


def test_proxy_validation(monkeypatch):
    base = {"registry_url": "https://registry.example.com", "max_per_tag": 1}

    assert load_config(Args(**base, proxy="http://proxy:3128")).proxy == "http://proxy:3128"
    monkeypatch.delenv("SWEEP_PROXY", raising=False)
    assert load_config(Args(**base, proxy="__ENV: SWEEP_PROXY")).proxy is None
    with pytest.raises(ConfigurationError):
        load_config(Args(**base, proxy="not a url"))


def test_out_of_range_values_are_reset():
    config = load_config(
        Args(
            registry_url="https://registry.example.com",
            max_per_tag=1,
            timeout=500,
            max_concurrent_requests=0,
        )
    )

    assert config.timeout == DEFAULT_TIMEOUT
    assert config.max_concurrent_requests == 10
