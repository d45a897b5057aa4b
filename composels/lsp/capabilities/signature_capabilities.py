"""
Signature help for port and volume mappings.

While the user types `- "8080:80/tcp"` the editor shows which part of the
mapping the cursor is on.
"""

from __future__ import annotations

import re

from lsprotocol.types import SignatureHelp

from composels.lsp.capabilities.capabilities import SignatureHelpCapability
from composels.lsp.context import ProviderRequest
from composels.lsp.signature.signature_collection import SignatureCollection, SignatureEntry

_ENTRY_PREFIX = r"^\s*-\s*[\"']?"

PortsSignatureCollection = SignatureCollection(
    [
        SignatureEntry(
            label="hostIp:hostPort:containerPort",
            parameters=("hostIp", "hostPort", "containerPort"),
            matcher=re.compile(_ENTRY_PREFIX + r"(\d+\.[\d.]*)(?::(\d*))?(?::(\d*))?"),
            documentation="Bind a host port on one host address",
        ),
        SignatureEntry(
            label="hostRange:containerRange",
            parameters=("hostRange", "containerRange"),
            matcher=re.compile(_ENTRY_PREFIX + r"(\d+-\d*)(?::(\d*-?\d*))?"),
            documentation="Map a range of host ports onto a range of container ports",
        ),
        SignatureEntry(
            label="hostPort:containerPort/protocol",
            parameters=("hostPort", "containerPort", "protocol"),
            matcher=re.compile(_ENTRY_PREFIX + r"(\d+):(\d+)/(\w*)"),
            documentation="Map a host port onto a container port for one protocol",
        ),
        SignatureEntry(
            label="hostPort:containerPort",
            parameters=("hostPort", "containerPort"),
            matcher=re.compile(_ENTRY_PREFIX + r"(\d+):(\d*)"),
            documentation="Map a host port onto a container port",
        ),
        SignatureEntry(
            label="containerPort",
            parameters=("containerPort",),
            matcher=re.compile(_ENTRY_PREFIX + r"(\d*)"),
            documentation="Expose a container port on a random host port",
        ),
    ]
)

VolumesSignatureCollection = SignatureCollection(
    [
        SignatureEntry(
            label="hostPath:containerPath:mode",
            parameters=("hostPath", "containerPath", "mode"),
            matcher=re.compile(
                _ENTRY_PREFIX
                + r"((?:[a-zA-Z]:\\)?[^:\"'\s]*)"
                + r"(?::((?:[a-zA-Z]:\\)?[^:\"'\s]*))?"
                + r"(?::(\w*))?"
            ),
            documentation="Mount a host path or named volume into the container",
        ),
    ]
)

_PORTS_ITEM_PATH = re.compile(r"/services/[^/]+/ports/<item>/.*")
_VOLUMES_ITEM_PATH = re.compile(r"/services/[^/]+/volumes/<item>/.*")


class PortsSignatureHelpCapability(SignatureHelpCapability):
    @property
    def name(self) -> str:
        return "ports_signature_help"

    @property
    def description(self) -> str:
        return "Parameter hints for port mappings"

    async def can_handle(self, request: ProviderRequest) -> bool:
        info = request.position_info
        return info is not None and _PORTS_ITEM_PATH.fullmatch(info.logical_path) is not None

    async def signature_help(self, request: ProviderRequest) -> SignatureHelp | None:
        return PortsSignatureCollection.signature_help(
            request.line, request.column, request.client.supports_active_parameter
        )


class VolumesSignatureHelpCapability(SignatureHelpCapability):
    @property
    def name(self) -> str:
        return "volumes_signature_help"

    @property
    def description(self) -> str:
        return "Parameter hints for volume mappings"

    async def can_handle(self, request: ProviderRequest) -> bool:
        info = request.position_info
        return info is not None and _VOLUMES_ITEM_PATH.fullmatch(info.logical_path) is not None

    async def signature_help(self, request: ProviderRequest) -> SignatureHelp | None:
        return VolumesSignatureCollection.signature_help(
            request.line, request.column, request.client.supports_active_parameter
        )
