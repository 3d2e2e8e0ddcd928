import base64
import logging
from collections.abc import Sequence
from enum import StrEnum
from logging import LogRecord
from pathlib import Path

import httpx
import semver
from pydantic import ValidationError

from tagsweep.config import LOG_FORMAT, VERSION, Config
from tagsweep.models import RetentionSplit, Rule, RunSummary, SortMode

WILDCARD_BUCKET = ".*"


class Colors(StrEnum):
    RED = "\033[31m"
    CRED = "\033[91m"
    YELLOW = "\033[33m"
    RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    def __init__(self, fmt: str | None = None, *args, **kwargs) -> None:
        self.format_ = fmt
        self.FORMATS = {
            logging.WARNING: f"{Colors.YELLOW}{self.format_}{Colors.RESET}",
            logging.ERROR: f"{Colors.RED}{self.format_}{Colors.RESET}",
            logging.CRITICAL: f"{Colors.CRED}{self.format_}{Colors.RESET}",
        }
        super().__init__(fmt, *args, **kwargs)

    def format(self, record: LogRecord) -> str:
        log_fmt = self.FORMATS.get(record.levelno, self.format_)
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def init_logger(config: Config) -> None:
    if not config.http_logs:
        logging.getLogger("httpx").disabled = True

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
    handlers: list[logging.Handler] = [stream_handler]

    if config.log_file:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=logging.INFO, handlers=handlers, force=True)


def build_headers(config: Config) -> dict[str, str]:
    headers = {
        "Accept": "application/json",
        "User-Agent": f"Registry tag sweeper/{VERSION}",
        "Docker-Distribution-API-Version": "registry/2.0",
    }
    if config.username:
        basic_auth = base64.standard_b64encode(
            f"{config.username}:{config.password or ''}".encode()
        ).decode()
        headers["Authorization"] = f"Basic {basic_auth}"
    return headers


def describe_http_error(err: Exception) -> str:
    if isinstance(err, httpx.HTTPStatusError):
        return f"code: {err.response.status_code}, text: {err.response.text}"
    if isinstance(err, ValidationError):
        problems = "; ".join(error["msg"] for error in err.errors())
        return f"Invalid response: {problems}"
    return f"Error: {str(err) or type(err).__name__}"


def is_repository_admitted(repository: str, rules: Sequence[Rule]) -> bool:
    if not rules:
        return True
    return any(rule.regex.search(repository) for rule in rules)


# NOTE: a tag matching several rules lands in every matching bucket and is
# ranked independently in each of them.
def classify_tags(tags: Sequence[str], rules: Sequence[Rule]) -> dict[str, list[str]]:
    if not rules:
        return {WILDCARD_BUCKET: list(tags)}

    buckets: dict[str, list[str]] = {}
    for tag in tags:
        for rule in rules:
            if rule.regex.search(tag):
                buckets.setdefault(rule.pattern, []).append(tag)
    return buckets


def rank_tags(tags: Sequence[str], max_keep: int, mode: SortMode) -> RetentionSplit:
    """Split tags into the newest ``max_keep`` and the rest, newest first.

    In semver mode tags that don't parse as a semantic version (after one
    optional leading ``v``) are left out of both lists.
    """
    if mode == SortMode.SEMVER:
        versions: list[tuple[semver.Version, str]] = []
        for tag in tags:
            try:
                versions.append((semver.Version.parse(tag.removeprefix("v")), tag))
            except ValueError:
                logging.debug(f"Tag '{tag}' is not a semantic version, ignored")
        versions.sort(key=lambda version: version[0], reverse=True)
        ordered = [tag for _, tag in versions]
    else:
        ordered = sorted(tags, reverse=True)

    n = min(max_keep, len(ordered))
    return RetentionSplit(keep=ordered[:n], remove=ordered[n:])


def render_summary(summary: RunSummary) -> str:
    lines: list[str] = []
    if summary.errors:
        errors = "\n\t".join(summary.errors)
        lines.append(f"The following errors occurred during processing:\n\t{errors}\n")

    if summary.dry_run:
        lines.append(f"\n\tFound a total of {summary.total} tag(s) to delete")
        lines.append(
            "\n\tDelete flag (-d/--delete) not specified, "
            "none of the above have actually been deleted."
        )
    else:
        lines.append(f"\n\tDeleted a total of {summary.total} tag(s)")
        lines.append(
            "\n\tRemember to run garbage collection on your registry "
            "to ensure that files get removed on disk."
        )
    return "\n".join(lines)


def write_report(summary: RunSummary, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(summary.model_dump_json(indent=4))
