import asyncio
import logging

import httpx
from pydantic import ValidationError

from tagsweep.config import Config
from tagsweep.errors import FatalRunError, RepositoryError
from tagsweep.models import DeletionCandidate, RepositoryOutcome, RunSummary
from tagsweep.registry import RegistryClient, create_session
from tagsweep.utils import (
    classify_tags,
    describe_http_error,
    is_repository_admitted,
    rank_tags,
)

REQUEST_ERRORS = (httpx.HTTPError, httpx.InvalidURL, ValidationError)


async def sweep_repository(
    registry: RegistryClient, repository: str, config: Config
) -> RepositoryOutcome:
    """Run fetch -> classify -> rank -> resolve -> delete for one repository.

    Log lines are buffered and returned with the outcome. Deletions already
    issued stay in place when a later call fails.
    """
    try:
        tags = await registry.list_tags(repository)
    except REQUEST_ERRORS as err:
        raise RepositoryError(
            repository,
            f"Error getting tags for {repository}. {describe_http_error(err)}",
        ) from err

    log: list[str] = []
    no_tags = f"[{repository}] No tags eligible for deletion found."
    buckets = classify_tags(tags, config.tag_rules)
    if not buckets:
        log.append(no_tags)
        return RepositoryOutcome(repository=repository, log=log, count=0)

    tags_for_deletion = 0
    deleted = 0
    for pattern, bucket in buckets.items():
        split = rank_tags(bucket, config.max_per_tag, config.sort_mode)
        if not split.remove:
            continue
        log.append(
            f"[{repository}] Found {len(split.remove)} tags eligible for deletion "
            f"for pattern /{pattern}/"
        )

        # one request at a time per repository
        for tag in split.remove:
            try:
                candidate = DeletionCandidate(
                    tag=tag, digest=await registry.resolve_digest(repository, tag)
                )
            except REQUEST_ERRORS as err:
                raise RepositoryError(
                    repository,
                    f"Error getting digest for {repository}:{tag}. "
                    f"{describe_http_error(err)}{_already_deleted(deleted)}",
                ) from err

            if candidate.digest is None:
                log.append(f"[{repository}] WARNING: Couldn't find tag digest for {tag}")
                continue

            log.append(f"[{repository}] tag to be deleted {tag}")
            if config.delete:
                try:
                    await registry.delete_manifest(repository, candidate.digest)
                except REQUEST_ERRORS as err:
                    raise RepositoryError(
                        repository,
                        f"Error deleting {repository}:{tag}. "
                        f"{describe_http_error(err)}{_already_deleted(deleted)}",
                    ) from err
                deleted += 1
                log.append(f"[{repository}] Deleted {tag}")
            tags_for_deletion += 1

    if tags_for_deletion == 0:
        log.append(no_tags)

    return RepositoryOutcome(repository=repository, log=log, count=tags_for_deletion)


def _already_deleted(deleted: int) -> str:
    if not deleted:
        return ""
    return f" ({deleted} tag(s) were already deleted)"


async def _limited_sweep(
    limiter: asyncio.Semaphore, registry: RegistryClient, repository: str, config: Config
) -> RepositoryOutcome:
    async with limiter:
        return await sweep_repository(registry, repository, config)


async def run_sweep(registry: RegistryClient, config: Config) -> RunSummary:
    try:
        repositories = await registry.list_repositories()
    except REQUEST_ERRORS as err:
        raise FatalRunError(
            f"Error getting the repository catalog. {describe_http_error(err)}"
        ) from err

    summary = RunSummary(dry_run=not config.delete)
    limiter = asyncio.Semaphore(config.max_concurrent_requests)
    tasks: list[asyncio.Task[RepositoryOutcome]] = []
    for repository in repositories:
        if not is_repository_admitted(repository, config.image_rules):
            logging.info(
                f"Skipping repository '{repository}', it doesn't match any of the image patterns"
            )
            summary.skipped.append(repository)
            continue
        tasks.append(
            asyncio.create_task(_limited_sweep(limiter, registry, repository, config))
        )

    logging.info(f"Sweeping {len(tasks)} of {len(repositories)} repositories")

    for completed_task in asyncio.as_completed(tasks):
        try:
            outcome = await completed_task
        except RepositoryError as err:
            logging.debug(f"Repository '{err.repository}' failed: {err}")
            summary.errors.append(str(err))
            continue
        print("\n".join(outcome.log), flush=True)
        summary.outcomes.append(outcome)

    return summary


async def sweep_registry(
    config: Config, transport: httpx.AsyncBaseTransport | None = None
) -> RunSummary:
    async with create_session(config, transport) as session:
        return await run_sweep(RegistryClient(session, config.registry_url), config)
