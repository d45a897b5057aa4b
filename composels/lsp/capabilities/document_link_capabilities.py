"""
Links from `image:` values to their Docker Hub pages.

Only services without a `build` section are linked, since a built image has
no registry page.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import yaml
from lsprotocol.types import DocumentLink

from composels.lsp.capabilities.capabilities import DocumentLinkCapability
from composels.lsp.capabilities.code_lens_capabilities import find_mapping_entry
from composels.lsp.context import ProviderRequest

_DOCKER_HUB_IMAGE = re.compile(r"^(?P<image_name>[\w.-]+)(?P<tag>:[\w.-]+)?$", re.IGNORECASE)
_DOCKER_HUB_NAMESPACED_IMAGE = re.compile(
    r"^(?P<namespace>[a-z0-9]+)/(?P<image_name>[\w.-]+)(?P<tag>:[\w.-]+)?$", re.IGNORECASE
)
_MCR_IMAGE = re.compile(
    r"^mcr\.microsoft\.com/(?P<namespace>(?:[a-z0-9]+/)+)(?P<image_name>[\w.-]+)(?P<tag>:[\w.-]+)?$",
    re.IGNORECASE,
)
_MCR_PREFIX = "mcr.microsoft.com/"


@dataclass(frozen=True)
class ImageLink:
    target: str
    start: int
    length: int


def get_link_for_image(image: str) -> ImageLink | None:
    """Docker Hub page of an image reference, and the part of the text to link."""
    match = _DOCKER_HUB_IMAGE.match(image)
    if match:
        name = match.group("image_name")
        return ImageLink(f"https://hub.docker.com/_/{name}", 0, len(name))

    match = _DOCKER_HUB_NAMESPACED_IMAGE.match(image)
    if match:
        namespace, name = match.group("namespace"), match.group("image_name")
        return ImageLink(
            f"https://hub.docker.com/r/{namespace}/{name}", 0, len(namespace) + 1 + len(name)
        )

    match = _MCR_IMAGE.match(image)
    if match:
        namespace = match.group("namespace").rstrip("/")
        name = match.group("image_name")
        return ImageLink(
            f"https://hub.docker.com/_/microsoft-{namespace.replace('/', '-')}-{name}",
            0,
            len(_MCR_PREFIX) + len(namespace) + 1 + len(name),
        )

    return None


class ImageLinkCapability(DocumentLinkCapability):
    @property
    def name(self) -> str:
        return "image_links"

    @property
    def description(self) -> str:
        return "Docker Hub links for service images"

    async def can_handle(self, request: ProviderRequest) -> bool:
        client = request.client
        return client.supports_document_links and not client.alternate_yaml_language_service.image_links

    async def document_links(self, request: ProviderRequest) -> list[DocumentLink] | None:
        document = request.document
        services = find_mapping_entry(document.yaml_root, "services")
        if services is None or not isinstance(services[1], yaml.MappingNode):
            return None

        results: list[DocumentLink] = []
        for _, service in services[1].value:
            if request.token.is_cancellation_requested:
                return None
            if find_mapping_entry(service, "build") is not None:
                continue
            image = find_mapping_entry(service, "image")
            if image is None or not isinstance(image[1], yaml.ScalarNode):
                continue

            value = image[1]
            link = get_link_for_image(value.value)
            if link is None:
                continue
            start = value.start_mark.index + link.start
            if value.style in ("'", '"'):
                start += 1
            results.append(
                DocumentLink(
                    range=document.range_at(start, start + link.length),
                    target=link.target,
                )
            )

        return results
