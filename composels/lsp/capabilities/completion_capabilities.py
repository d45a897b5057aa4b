"""
Completion sub-providers.

Each sub-provider serves one table from completion_tables. The dispatcher
runs all of them for every completion request and unions their items.
"""

from __future__ import annotations

from lsprotocol.types import CompletionItem

from composels.lsp.capabilities.capabilities import CompletionCapability
from composels.lsp.completion.completion_collection import CompletionCollection
from composels.lsp.completion.completion_tables import (
    BuildCompletionCollection,
    PortsCompletionCollection,
    RootCompletionCollection,
    ServiceCompletionCollection,
    VolumesCompletionCollection,
)
from composels.lsp.context import ProviderRequest
from composels.lsp.document_settings import DEFAULT_TAB_SIZE


class CollectionCompletionCapability(CompletionCapability):
    """Completion backed by a declarative CompletionCollection."""

    collection: CompletionCollection

    @property
    def name(self) -> str:
        return f"{self.collection.name}_completion"

    async def can_handle(self, request: ProviderRequest) -> bool:
        if request.position_info is None:
            return False
        return self.collection.matches_location(request.position_info)

    async def complete(self, request: ProviderRequest) -> list[CompletionItem] | None:
        if request.position_info is None:
            return None
        alternate = request.client.alternate_yaml_language_service
        settings = request.context.settings
        items = self.collection.get_active_items(
            request.position_info,
            request.line,
            tab_size=settings.tab_size if settings else DEFAULT_TAB_SIZE,
            basic=not alternate.basic_completions,
            advanced=not alternate.advanced_completions,
        )
        return items or None


class RootCompletionCapability(CollectionCompletionCapability):
    collection = RootCompletionCollection

    @property
    def description(self) -> str:
        return "Top-level keys of a Compose file"


class ServiceCompletionCapability(CollectionCompletionCapability):
    collection = ServiceCompletionCollection

    @property
    def description(self) -> str:
        return "Keys of a service definition"


class BuildCompletionCapability(CollectionCompletionCapability):
    collection = BuildCompletionCollection

    @property
    def description(self) -> str:
        return "Keys of a long-form build definition"


class PortsCompletionCapability(CollectionCompletionCapability):
    collection = PortsCompletionCollection

    @property
    def description(self) -> str:
        return "Port mapping formats in a service's ports list"


class VolumesCompletionCapability(CollectionCompletionCapability):
    collection = VolumesCompletionCollection

    @property
    def description(self) -> str:
        return "Volume mapping formats in a service's volumes list"
