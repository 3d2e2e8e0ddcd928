import httpx
from pydantic import BaseModel

from tagsweep.config import Config
from tagsweep.models import Catalog, ImageTagList
from tagsweep.utils import build_headers

MANIFEST_MEDIA_TYPES = (
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
)
DIGEST_HEADER = "Docker-Content-Digest"


def create_session(
    config: Config, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    max_keepalive_connections = (config.max_concurrent_requests // 2) or 1
    return httpx.AsyncClient(
        headers=build_headers(config),
        timeout=config.timeout,
        follow_redirects=True,
        limits=httpx.Limits(
            max_connections=config.max_concurrent_requests,
            max_keepalive_connections=max_keepalive_connections,
        ),
        proxy=config.proxy,
        transport=transport,
        trust_env=False,
    )


class RegistryClient:
    """Docker Registry HTTP API v2 calls used by the sweep.

    Every method raises ``httpx.HTTPError`` on transport failures and
    unexpected statuses, and listings raise ``pydantic.ValidationError`` on
    malformed bodies. The caller decides how far the failure reaches.
    """

    def __init__(self, session: httpx.AsyncClient, registry_url: str) -> None:
        self.session = session
        self.registry_url = registry_url.rstrip("/")

    async def _get_paginated(self, url: str, page_model: type[BaseModel], key: str) -> list[str]:
        items: list[str] = []
        next_url: httpx.URL | None = httpx.URL(url)
        while next_url is not None:
            response = await self.session.get(next_url)
            response.raise_for_status()
            # raises ValidationError on bodies that are not the expected object
            page = page_model.model_validate_json(response.content)
            items.extend(getattr(page, key) or [])

            link = response.links.get("next", {}).get("url")
            next_url = response.url.join(link) if link else None
        return items

    async def list_repositories(self) -> list[str]:
        return await self._get_paginated(
            f"{self.registry_url}/_catalog", Catalog, "repositories"
        )

    async def list_tags(self, repository: str) -> list[str]:
        return await self._get_paginated(
            f"{self.registry_url}/{repository}/tags/list", ImageTagList, "tags"
        )

    async def resolve_digest(self, repository: str, tag: str) -> str | None:
        response = await self.session.head(
            f"{self.registry_url}/{repository}/manifests/{tag}",
            headers={"Accept": ", ".join(MANIFEST_MEDIA_TYPES)},
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.headers.get(DIGEST_HEADER)

    async def delete_manifest(self, repository: str, digest: str) -> None:
        response = await self.session.delete(
            f"{self.registry_url}/{repository}/manifests/{digest}"
        )
        response.raise_for_status()
