import pytest

from tagsweep.config import Config, compile_rules
from tagsweep.models import SortMode


class FakeRegistry:
    """In-memory stand-in for RegistryClient.

    ``tags`` maps repository -> tag list, or an exception to raise.
    ``digests`` maps (repository, tag) -> digest; missing pairs resolve to None.
    """

    def __init__(self, repositories=None, tags=None, digests=None, fail_digest=None, fail_delete=None):
        self.repositories = repositories or []
        self.tags = tags or {}
        self.digests = digests or {}
        self.fail_digest = fail_digest or {}
        self.fail_delete = fail_delete or {}
        self.deleted: list[tuple[str, str]] = []
        self.resolved: list[tuple[str, str]] = []

    async def list_repositories(self):
        if isinstance(self.repositories, Exception):
            raise self.repositories
        return list(self.repositories)

    async def list_tags(self, repository):
        tags = self.tags.get(repository, [])
        if isinstance(tags, Exception):
            raise tags
        return list(tags)

    async def resolve_digest(self, repository, tag):
        self.resolved.append((repository, tag))
        if (repository, tag) in self.fail_digest:
            raise self.fail_digest[(repository, tag)]
        return self.digests.get((repository, tag))

    async def delete_manifest(self, repository, digest):
        if (repository, digest) in self.fail_delete:
            raise self.fail_delete[(repository, digest)]
        self.deleted.append((repository, digest))


def make_config(
    max_per_tag=1, tags=(), images=(), semver=False, delete=False, **kwargs
) -> Config:
    return Config(
        registry_url="https://registry.example.com",
        max_per_tag=max_per_tag,
        tag_rules=compile_rules(tags),
        image_rules=compile_rules(images),
        sort_mode=SortMode.SEMVER if semver else SortMode.LEXICOGRAPHIC,
        delete=delete,
        **kwargs,
    )


@pytest.fixture
def fake_registry_cls():
    return FakeRegistry


@pytest.fixture
def config_factory():
    return make_config
