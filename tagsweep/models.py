import re
from enum import StrEnum

from pydantic import BaseModel, computed_field


class SortMode(StrEnum):
    SEMVER = "semver"
    LEXICOGRAPHIC = "lexicographic"


class Rule(BaseModel):
    pattern: str
    regex: re.Pattern


class RetentionSplit(BaseModel):
    keep: list[str]
    remove: list[str]


class DeletionCandidate(BaseModel):
    tag: str
    digest: str | None = None


class RepositoryOutcome(BaseModel):
    repository: str
    log: list[str]
    count: int


class RunSummary(BaseModel):
    dry_run: bool
    outcomes: list[RepositoryOutcome] = []
    errors: list[str] = []
    skipped: list[str] = []

    @computed_field  # type: ignore[misc]
    @property
    def total(self) -> int:
        return sum(outcome.count for outcome in self.outcomes)


class Catalog(BaseModel):
    repositories: list[str] | None = None


class ImageTagList(BaseModel):
    name: str | None = None
    tags: list[str] | None = None
