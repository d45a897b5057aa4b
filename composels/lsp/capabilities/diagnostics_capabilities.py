"""
Syntax diagnostics.

Published after a quiet period following each change, so a burst of
keystrokes produces one publish. The first PyYAML error of the document is
reported as an error, and tolerant-parser warnings are added alongside.
"""

from __future__ import annotations

import asyncio

from lsprotocol.types import (
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    Diagnostic,
    DiagnosticSeverity,
    PublishDiagnosticsParams,
)

from composels.document.compose_document import ComposeDocument
from composels.lsp.capabilities.capabilities import Capability
from composels.lsp.context import ProviderRequest
from composels.utils.debounce import Debouncer

DIAGNOSTIC_SOURCE = "composels"
DEFAULT_DIAGNOSTIC_DELAY = 0.5


def build_diagnostics(document: ComposeDocument) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []

    error = document.yaml_error
    if error is not None:
        mark = getattr(error, "problem_mark", None) or getattr(error, "context_mark", None)
        if mark is not None:
            start = min(mark.index, len(document.text))
            end = max(start, document.cst.lines[document.cst.line_index(start)].end)
            error_range = document.range_at(start, end)
        else:
            error_range = document.range_at(0, 0)
        message = getattr(error, "problem", None) or str(error)
        diagnostics.append(
            Diagnostic(
                range=error_range,
                message=message,
                severity=DiagnosticSeverity.Error,
                source=DIAGNOSTIC_SOURCE,
            )
        )

    for issue in document.cst.warnings:
        diagnostics.append(
            Diagnostic(
                range=document.range_at(issue.offset, issue.offset + issue.length),
                message=issue.message,
                severity=DiagnosticSeverity.Warning,
                source=DIAGNOSTIC_SOURCE,
            )
        )

    return diagnostics


class DiagnosticsCapability(Capability):
    """
    Publishes syntax diagnostics for open documents.

    Not dispatched per request: it reacts to text sync notifications.
    """

    def __init__(self, server) -> None:
        super().__init__(server)
        self._debouncer = Debouncer()

    @property
    def name(self) -> str:
        return "diagnostics"

    @property
    def description(self) -> str:
        return "Syntax errors and parser warnings"

    def register(self) -> None:
        text_sync = self.server.text_sync_manager
        if text_sync is None:
            return
        text_sync.add_on_open_hook(self._on_open)
        text_sync.add_on_change_hook(self._on_change)
        text_sync.add_on_close_hook(self._on_close)

    async def can_handle(self, request: ProviderRequest | None = None) -> bool:
        client = self.server.compose_capabilities
        return (
            client.supports_publish_diagnostics
            and not client.alternate_yaml_language_service.syntax_validation
        )

    @property
    def delay(self) -> float:
        return self.server.diagnostic_delay

    def schedule(self, uri: str) -> asyncio.Task:
        return self._debouncer.schedule(uri, self.delay, lambda: self.publish(uri))

    def publish(self, uri: str) -> None:
        document = self.server.document_cache.get(uri) if self.server.document_cache else None
        if document is None:
            return
        self.server.text_document_publish_diagnostics(
            PublishDiagnosticsParams(
                uri=uri,
                version=document.version,
                diagnostics=build_diagnostics(document),
            )
        )

    async def _on_open(self, params: DidOpenTextDocumentParams) -> None:
        if await self.can_handle():
            self.schedule(params.text_document.uri)

    async def _on_change(self, params: DidChangeTextDocumentParams) -> None:
        if await self.can_handle():
            self.schedule(params.text_document.uri)

    async def _on_close(self, params: DidCloseTextDocumentParams) -> None:
        uri = params.text_document.uri
        self._debouncer.cancel(uri)
        if await self.can_handle():
            self.server.text_document_publish_diagnostics(
                PublishDiagnosticsParams(uri=uri, diagnostics=[])
            )
