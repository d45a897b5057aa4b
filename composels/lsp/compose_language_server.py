from __future__ import annotations

from typing import TYPE_CHECKING

from pygls.lsp.server import LanguageServer

from composels.lsp.capabilities.diagnostics_capabilities import DEFAULT_DIAGNOSTIC_DELAY
from composels.lsp.client_capabilities import ComposeClientCapabilities

if TYPE_CHECKING:
    from composels.lsp.capabilities.capabilities import CapabilityManager
    from composels.lsp.document_settings import DocumentSettingsManager
    from composels.lsp.text_sync_manager import TextSyncManager
    from composels.workspace.cache import DocumentCache


class ComposeLanguageServer(LanguageServer):
    """
    Custom Language Server with Compose-specific attributes.

    Attributes:
        document_cache: Current snapshot of every open document
        compose_capabilities: What the client told us it supports
        diagnostic_delay: Seconds of quiet before diagnostics are published
    """

    def __init__(self, name: str, version: str):
        super().__init__(name, version)

        self.document_cache: DocumentCache | None = None
        self.capability_manager: CapabilityManager | None = None
        self.text_sync_manager: TextSyncManager | None = None
        self.document_settings: DocumentSettingsManager | None = None
        self.compose_capabilities = ComposeClientCapabilities()
        self.diagnostic_delay: float = DEFAULT_DIAGNOSTIC_DELAY
