"""
LSP Capabilities Manager

This module manages LSP feature handlers (completion, hover, etc.) using a
plugin architecture: every feature is served by several narrow
sub-providers, each scoped to one part of a Compose file.

Design Principles:
1. Plugin-based (add sub-providers without modifying the dispatcher)
2. Resolve once (the logical path is computed once per request and shared)
3. Explicit reduction (each feature states how sub-results combine)
4. Fail fast (one failing sub-provider fails the whole request)
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lsprotocol.types import (
    CodeLens,
    CodeLensParams,
    CompletionItem,
    CompletionList,
    CompletionParams,
    DocumentLink,
    DocumentLinkParams,
    Hover,
    HoverParams,
    LogMessageParams,
    MessageType,
    SignatureHelp,
    SignatureHelpParams,
)
from pygls.exceptions import JsonRpcInvalidParams

from composels.document.position import resolve_position
from composels.lsp.context import ProviderRequest, RequestContext

if TYPE_CHECKING:
    from composels.lsp.compose_language_server import ComposeLanguageServer


class Capability(ABC):
    """
    Base class for all capability sub-providers.

    Each sub-provider serves one slice of a feature and decides from the
    shared request whether it applies.
    """

    def __init__(self, server: ComposeLanguageServer) -> None:
        self.server = server

    def register(self) -> None:
        """
        Register hooks with the server.

        Called once during server creation. Request features are routed by
        the CapabilityManager, so most sub-providers have nothing to do here.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this capability."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of what this capability does."""
        pass

    @abstractmethod
    async def can_handle(self, request: ProviderRequest) -> bool:
        """Check if the capability can handle the request."""
        pass


class CompletionCapability(Capability):
    """Base class for completion sub-providers."""

    @abstractmethod
    async def complete(self, request: ProviderRequest) -> list[CompletionItem] | None:
        """
        Provide completion items.

        Only called if can_handle() returns True.
        """
        pass


class SignatureHelpCapability(Capability):
    """Base class for signature help sub-providers."""

    @abstractmethod
    async def signature_help(self, request: ProviderRequest) -> SignatureHelp | None:
        pass


class HoverCapability(Capability):
    """Base class for hover sub-providers."""

    @abstractmethod
    async def hover(self, request: ProviderRequest) -> Hover | None:
        """Provide hover information."""
        pass


class CodeLensCapability(Capability):
    """Base class for code lens sub-providers."""

    @abstractmethod
    async def code_lenses(self, request: ProviderRequest) -> list[CodeLens] | None:
        pass


class DocumentLinkCapability(Capability):
    """Base class for document link sub-providers."""

    @abstractmethod
    async def document_links(self, request: ProviderRequest) -> list[DocumentLink] | None:
        pass


def union_results(results: Sequence[Any]) -> list[Any] | None:
    """All non-empty lists concatenated in registration order, or None."""
    combined: list[Any] = []
    for result in results:
        if result:
            combined.extend(result)
    return combined or None


def first_result(results: Sequence[Any]) -> Any:
    """The first result that is not None, in registration order."""
    for result in results:
        if result is not None:
            return result
    return None


@dataclass(frozen=True)
class CapabilityKind:
    """How one feature is dispatched: which sub-providers, which method, which reduction."""

    name: str
    base: type[Capability]
    method: str
    reduce: Callable[[Sequence[Any]], Any]


COMPLETION = CapabilityKind("completion", CompletionCapability, "complete", union_results)
SIGNATURE_HELP = CapabilityKind(
    "signatureHelp", SignatureHelpCapability, "signature_help", first_result
)
HOVER = CapabilityKind("hover", HoverCapability, "hover", first_result)
CODE_LENS = CapabilityKind("codeLens", CodeLensCapability, "code_lenses", union_results)
DOCUMENT_LINK = CapabilityKind(
    "documentLink", DocumentLinkCapability, "document_links", union_results
)


async def dispatch(
    kind: CapabilityKind,
    params: Any,
    context: RequestContext,
    subproviders: Sequence[Capability],
) -> Any:
    """
    Fan a request out to every sub-provider and reduce their results.

    The logical path is resolved once and shared. All sub-providers run
    concurrently and are all awaited, even when the reduction only keeps the
    first result. If any of them raises, the request fails with that error.

    When the request itself is cancelled, the shared token is set and the
    sub-providers are still joined before the cancellation propagates.
    """
    position = getattr(params, "position", None)
    position_info = (
        resolve_position(context.document, position) if position is not None else None
    )
    request = ProviderRequest(params, context, position_info)

    async def run(capability: Capability) -> Any:
        if await capability.can_handle(request):
            return await getattr(capability, kind.method)(request)
        return None

    gathered = asyncio.gather(*(run(c) for c in subproviders), return_exceptions=True)
    try:
        results = await asyncio.shield(gathered)
    except asyncio.CancelledError:
        context.token.cancel()
        await gathered
        raise

    for result in results:
        if isinstance(result, BaseException):
            raise result
    return kind.reduce(results)


class CapabilityManager:
    """
    Central manager for all capability sub-providers.

    Usage:
        # In server creation
        manager = CapabilityManager(server)
        manager.register_all()

        # Feature handlers delegate here
        return await manager.handle_completion(params)
    """

    def __init__(
        self,
        server: ComposeLanguageServer,
        capabilities: dict[str, Capability] | None = None,
    ):
        self.server = server

        # Default capabilities, in registration order
        if capabilities is None:
            from composels.lsp.capabilities.code_lens_capabilities import (
                ServiceStartupCodeLensCapability,
            )
            from composels.lsp.capabilities.completion_capabilities import (
                BuildCompletionCapability,
                PortsCompletionCapability,
                RootCompletionCapability,
                ServiceCompletionCapability,
                VolumesCompletionCapability,
            )
            from composels.lsp.capabilities.diagnostics_capabilities import (
                DiagnosticsCapability,
            )
            from composels.lsp.capabilities.document_link_capabilities import (
                ImageLinkCapability,
            )
            from composels.lsp.capabilities.hover_capabilities import KeyHoverCapability
            from composels.lsp.capabilities.signature_capabilities import (
                PortsSignatureHelpCapability,
                VolumesSignatureHelpCapability,
            )

            capabilities = {
                "root_completion": RootCompletionCapability(server),
                "service_completion": ServiceCompletionCapability(server),
                "build_completion": BuildCompletionCapability(server),
                "ports_completion": PortsCompletionCapability(server),
                "volumes_completion": VolumesCompletionCapability(server),
                "ports_signature_help": PortsSignatureHelpCapability(server),
                "volumes_signature_help": VolumesSignatureHelpCapability(server),
                "key_hover": KeyHoverCapability(server),
                "service_startup_code_lens": ServiceStartupCodeLensCapability(server),
                "image_links": ImageLinkCapability(server),
                "diagnostics": DiagnosticsCapability(server),
            }

        self.capabilities = capabilities
        self._registered = False

    def register_all(self) -> None:
        """Register all capabilities with the server."""
        if self._registered:
            return

        for capability in self.capabilities.values():
            capability.register()

        self._registered = True

    def get_capability(self, name: str) -> Capability | None:
        """Get a specific capability by name"""
        return self.capabilities.get(name)

    def get_capabilities_by_type(self, capability_type: type) -> list[Capability]:
        """Get all capabilities of a specific type (e.g., all CompletionCapability)."""
        return [
            cap
            for cap in self.capabilities.values()
            if isinstance(cap, capability_type)
        ]

    def create_context(self, uri: str) -> RequestContext:
        """Take the current snapshot of a document for one request."""
        cache = self.server.document_cache
        document = cache.get(uri) if cache is not None else None
        if document is None:
            raise JsonRpcInvalidParams(f"Document not found in cache: {uri}")
        return RequestContext(
            server=self.server,
            document=document,
            client=self.server.compose_capabilities,
        )

    async def dispatch(
        self, kind: CapabilityKind, params: Any, context: RequestContext
    ) -> Any:
        try:
            return await dispatch(
                kind, params, context, self.get_capabilities_by_type(kind.base)
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.server.window_log_message(
                LogMessageParams(
                    type=MessageType.Error,
                    message=f"{kind.name} failed for {context.document.uri}: "
                            f"{type(e).__name__}: {e}",
                )
            )
            raise

    async def handle_completion(self, params: CompletionParams) -> CompletionList | None:
        """Union of the items of every applicable completion sub-provider."""
        context = self.create_context(params.text_document.uri)
        if self.server.document_settings is not None:
            context.settings = await self.server.document_settings.get(context.document)
        items = await self.dispatch(COMPLETION, params, context)
        if not items:
            return None
        return CompletionList(is_incomplete=False, items=items)

    async def handle_signature_help(self, params: SignatureHelpParams) -> SignatureHelp | None:
        """First signature help result in registration order."""
        context = self.create_context(params.text_document.uri)
        return await self.dispatch(SIGNATURE_HELP, params, context)

    async def handle_hover(self, params: HoverParams) -> Hover | None:
        """First hover result in registration order."""
        context = self.create_context(params.text_document.uri)
        return await self.dispatch(HOVER, params, context)

    async def handle_code_lens(self, params: CodeLensParams) -> list[CodeLens] | None:
        context = self.create_context(params.text_document.uri)
        return await self.dispatch(CODE_LENS, params, context)

    async def handle_document_links(
        self, params: DocumentLinkParams
    ) -> list[DocumentLink] | None:
        context = self.create_context(params.text_document.uri)
        return await self.dispatch(DOCUMENT_LINK, params, context)
