"""
Hover descriptions for well-known Compose keys.

The table maps logical paths of keys to markdown. The first matching pattern
wins, so more specific paths come first.
"""

from __future__ import annotations

import re

from lsprotocol.types import Hover, MarkupContent, MarkupKind

from composels.document.cst import Scalar
from composels.document.position import REGION_KEY
from composels.lsp.capabilities.capabilities import HoverCapability
from composels.lsp.context import ProviderRequest

_SERVICE = r"/services/[^/]+"

KEY_DOCUMENTATION: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), markdown)
    for pattern, markdown in (
        (r"/version", "**version**: the Compose file format version. Informational only."),
        (r"/name", "**name**: the project name, used as a prefix for containers and networks."),
        (r"/services", "**services**: the containers that make up the application."),
        (r"/networks", "**networks**: networks that services can be attached to."),
        (r"/volumes", "**volumes**: named volumes that services can mount."),
        (r"/secrets", "**secrets**: sensitive data granted to services."),
        (r"/configs", "**configs**: configuration files granted to services."),
        (_SERVICE + r"/build/context", "**context**: path or URL of the build context."),
        (_SERVICE + r"/build/dockerfile", "**dockerfile**: Dockerfile to build, relative to the context."),
        (_SERVICE + r"/build/args", "**args**: build arguments passed to the Dockerfile."),
        (_SERVICE + r"/build/target", "**target**: build stage to stop at in a multi-stage Dockerfile."),
        (_SERVICE + r"/build", "**build**: how to build the image for this service."),
        (_SERVICE + r"/image", "**image**: the image to start the container from."),
        (_SERVICE + r"/command", "**command**: overrides the default command of the image."),
        (_SERVICE + r"/entrypoint", "**entrypoint**: overrides the default entrypoint of the image."),
        (_SERVICE + r"/container_name", "**container_name**: a custom container name."),
        (_SERVICE + r"/depends_on", "**depends_on**: services that must start before this one."),
        (_SERVICE + r"/environment", "**environment**: environment variables set in the container."),
        (_SERVICE + r"/env_file", "**env_file**: files to read environment variables from."),
        (_SERVICE + r"/healthcheck", "**healthcheck**: a check that reports whether the container is healthy."),
        (_SERVICE + r"/networks", "**networks**: networks this service is attached to."),
        (_SERVICE + r"/ports", "**ports**: ports exposed on the host, as `host:container`."),
        (_SERVICE + r"/restart", "**restart**: restart policy: `no`, `always`, `on-failure` or `unless-stopped`."),
        (_SERVICE + r"/volumes", "**volumes**: host paths or named volumes mounted into the container."),
        (_SERVICE, "**service**: a container definition."),
    )
)


def find_key_documentation(logical_path: str) -> str | None:
    for pattern, markdown in KEY_DOCUMENTATION:
        if pattern.fullmatch(logical_path):
            return markdown
    return None


class KeyHoverCapability(HoverCapability):
    @property
    def name(self) -> str:
        return "key_hover"

    @property
    def description(self) -> str:
        return "Descriptions of well-known Compose keys"

    async def can_handle(self, request: ProviderRequest) -> bool:
        info = request.position_info
        if info is None or request.client.alternate_yaml_language_service.hover:
            return False
        return info.region == REGION_KEY and info.item is not None and isinstance(info.item.key, Scalar)

    async def hover(self, request: ProviderRequest) -> Hover | None:
        info = request.position_info
        assert info is not None and info.item is not None
        markdown = find_key_documentation(info.logical_path)
        if markdown is None:
            return None
        key = info.item.key
        return Hover(
            contents=MarkupContent(kind=MarkupKind.Markdown, value=markdown),
            range=request.document.range_at(key.offset, key.end),
        )
