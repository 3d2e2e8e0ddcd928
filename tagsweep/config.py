import logging
import os
import re
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError, field_validator

from tagsweep.errors import ConfigurationError, InvalidPatternError
from tagsweep.models import Rule, SortMode

VERSION = "0.1.0"
MAX_CONCURRENT_REQUESTS = 20
DEFAULT_TIMEOUT = 20
LOG_FORMAT = "[%(asctime)s] [%(levelname)-8s] |> %(message)s"
ENV_PREFIX = "__ENV:"
logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)


class Args(BaseModel):
    registry_url: str
    registry_user: str | None = None
    registry_password: str | None = None
    max_per_tag: int
    tags: list[str] = []
    images: list[str] = []
    semver: bool = False
    delete: bool = False
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    timeout: int = DEFAULT_TIMEOUT
    proxy: str | None = None
    http_logs: bool = False
    log_file: Path | None = None
    report: Path | None = None

    @classmethod
    def from_args(cls, argv: list[str] | None = None) -> "Args":
        parser = ArgumentParser(
            prog="registry-tag-sweeper",
            description=(
                "Mark old registry tags for deletion. "
                "You'll have to run the registry garbage collection yourself"
            ),
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        parser.add_argument(
            "-r",
            "--registry-url",
            help="The base URL of the container registry. e.g. https://registry.example.com/",
            required=True,
        )
        parser.add_argument(
            "--registry-user",
            help="Username for the registry. Use '__ENV: <YOUR_VAR_NAME>' to read it from the environment",
            default=None,
        )
        parser.add_argument(
            "--registry-password",
            help="Password for the registry. Use '__ENV: <YOUR_VAR_NAME>' to read it from the environment",
            default=None,
        )
        parser.add_argument(
            "-m",
            "--max-per-tag",
            help="Maximum number of tags to keep per tag pattern",
            type=int,
            required=True,
        )
        parser.add_argument(
            "-t",
            "--tags",
            help=(
                "Regex for tags to consider, can be repeated. max-per-tag is applied to "
                "each pattern separately. If none, all tags form a single group"
            ),
            action="append",
            default=[],
        )
        parser.add_argument(
            "-i",
            "--images",
            help="Regex for repositories to sweep, can be repeated. If none, all repositories are swept",
            action="append",
            default=[],
        )
        parser.add_argument(
            "-s",
            "--semver",
            action="store_true",
            help="Sort tags by semantic version. Tags that are not semver are left untouched",
            default=False,
        )
        parser.add_argument(
            "-d",
            "--delete",
            action="store_true",
            help="Run actual deletions. Otherwise it's a dry run",
            default=False,
        )
        parser.add_argument(
            "--max-concurrent-requests",
            help="Number of repositories processed at the same time",
            type=int,
            default=MAX_CONCURRENT_REQUESTS,
        )
        parser.add_argument(
            "--timeout",
            help="HTTP timeout in seconds (1-120)",
            type=int,
            default=DEFAULT_TIMEOUT,
        )
        parser.add_argument(
            "--proxy",
            help="HTTP proxy: <scheme>://<address>[:port]",
            default=None,
        )
        parser.add_argument(
            "--http-logs",
            action="store_true",
            help="Enable http logs for every request",
            default=False,
        )
        parser.add_argument("--log-file", help="Also write logs to this file", default=None)
        parser.add_argument(
            "--report", help="Write the run summary as JSON to this file", default=None
        )
        parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
        args = parser.parse_args(argv)

        return cls(
            registry_url=args.registry_url,
            registry_user=args.registry_user,
            registry_password=args.registry_password,
            max_per_tag=args.max_per_tag,
            tags=args.tags,
            images=args.images,
            semver=args.semver,
            delete=args.delete,
            max_concurrent_requests=args.max_concurrent_requests,
            timeout=args.timeout,
            proxy=args.proxy,
            http_logs=args.http_logs,
            log_file=args.log_file,
            report=args.report,
        )


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    registry_url: str
    username: str | None = None
    password: str | None = None
    max_per_tag: PositiveInt
    tag_rules: list[Rule] = []
    image_rules: list[Rule] = []
    sort_mode: SortMode = SortMode.LEXICOGRAPHIC
    delete: bool = False
    max_concurrent_requests: int = MAX_CONCURRENT_REQUESTS
    timeout: int = DEFAULT_TIMEOUT
    proxy: str | None = None
    http_logs: bool = False
    log_file: Path | None = None
    report: Path | None = None

    @field_validator("username", "password")
    @classmethod
    def handle_env_vars(cls, v: str | None) -> str | None:
        if isinstance(v, str) and v.startswith(ENV_PREFIX):
            name = v[len(ENV_PREFIX) :].strip()
            value = os.environ.get(name, "")
            if not value:
                raise ValueError(f"environment variable '{name}' is not set")
            return value
        return v

    @field_validator("registry_url")
    @classmethod
    def set_registry_url(cls, value: str) -> str:
        parsed = urlparse(value.strip())
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("registry url must look like <scheme>://<address>[:port]")
        return f"{value.strip().strip('/')}/v2"

    @field_validator("max_concurrent_requests")
    @classmethod
    def set_max_concurrent_requests(cls, value: int) -> int:
        if value <= 0:
            logging.error("Max_concurrent_requests must be greater than 0. Set 10")
            return 10
        return value

    @field_validator("proxy")
    @classmethod
    def set_proxy(cls, value: str | None) -> str | None:
        if not value:
            return None
        if value.startswith(ENV_PREFIX):
            value = os.environ.get(value[len(ENV_PREFIX) :].strip(), "")
            if not value:
                return None

        parsed = urlparse(value)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("proxy must be a valid url: <scheme>://<address>[:port]")
        return value

    @field_validator("timeout")
    @classmethod
    def set_timeout(cls, value: int) -> int:
        if not 0 < value <= 120:
            logging.error(f"Timeout must be in range 1-120. Set {DEFAULT_TIMEOUT}")
            return DEFAULT_TIMEOUT
        return value


def compile_rules(patterns: Iterable[str]) -> list[Rule]:
    rules: list[Rule] = []
    seen: set[str] = set()
    for pattern in patterns:
        if pattern in seen:
            continue
        try:
            regex = re.compile(pattern)
        except re.error as err:
            raise InvalidPatternError(pattern, err) from err
        seen.add(pattern)
        rules.append(Rule(pattern=pattern, regex=regex))
    return rules


def load_config(args: Args) -> Config:
    image_rules = compile_rules(args.images)
    tag_rules = compile_rules(args.tags)

    try:
        return Config(
            registry_url=args.registry_url,
            username=args.registry_user,
            password=args.registry_password,
            max_per_tag=args.max_per_tag,
            tag_rules=tag_rules,
            image_rules=image_rules,
            sort_mode=SortMode.SEMVER if args.semver else SortMode.LEXICOGRAPHIC,
            delete=args.delete,
            max_concurrent_requests=args.max_concurrent_requests,
            timeout=args.timeout,
            proxy=args.proxy,
            http_logs=args.http_logs,
            log_file=args.log_file,
            report=args.report,
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config: {e}") from e
