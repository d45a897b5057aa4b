"""
Document Cache for ComposeLS

Holds the current ComposeDocument snapshot of every open document.

Design Principles:
1. Snapshots are immutable (an edit replaces the snapshot, never patches it)
2. Full re-parse on every change (Compose files are small)
3. Requests keep the snapshot they started with
4. Nothing outlives the open document
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

from lsprotocol.types import (
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    TextDocumentContentChangeEvent,
)
from pygls.workspace import PositionCodec

from composels.document.compose_document import ComposeDocument

if TYPE_CHECKING:
    from composels.lsp.compose_language_server import ComposeLanguageServer


class DocumentCache:
    """
    Current snapshot per document URI.

    Usage:
        cache = DocumentCache(server=server)
        cache.register_text_sync_hooks()

        # Take a snapshot for a request
        document = cache.get(uri)
    """

    def __init__(
        self,
        server: ComposeLanguageServer | None = None,
        position_codec: PositionCodec | None = None,
    ) -> None:
        self.server = server
        self.position_codec = position_codec or PositionCodec()
        self._documents: dict[str, ComposeDocument] = {}

    def register_text_sync_hooks(self) -> None:
        """Keep snapshots in step with the editor."""
        if self.server is None or self.server.text_sync_manager is None:
            return
        text_sync = self.server.text_sync_manager
        text_sync.add_on_open_hook(self._on_open)
        text_sync.add_on_change_hook(self._on_change)
        text_sync.add_on_close_hook(self._on_close)

    def open(self, uri: str, text: str, version: int | None = None) -> ComposeDocument:
        document = ComposeDocument.parse(uri, text, version, self.position_codec)
        self._documents[uri] = document
        return document

    def change(
        self,
        uri: str,
        changes: Sequence[TextDocumentContentChangeEvent],
        version: int | None,
    ) -> ComposeDocument:
        """
        Replace the snapshot of `uri` with one that has `changes` applied.

        Raises KeyError when the document was never opened.
        """
        previous = self._documents.get(uri)
        if previous is None:
            raise KeyError(f"Document is not open: {uri}")
        document = previous.update(changes, version)
        self._documents[uri] = document
        return document

    def close(self, uri: str) -> None:
        self._documents.pop(uri, None)

    def get(self, uri: str) -> ComposeDocument | None:
        return self._documents.get(uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def __iter__(self) -> Iterator[str]:
        return iter(self._documents)

    async def _on_open(self, params: DidOpenTextDocumentParams) -> None:
        item = params.text_document
        self.open(item.uri, item.text, item.version)

    async def _on_change(self, params: DidChangeTextDocumentParams) -> None:
        self.change(
            params.text_document.uri,
            params.content_changes,
            params.text_document.version,
        )

    async def _on_close(self, params: DidCloseTextDocumentParams) -> None:
        self.close(params.text_document.uri)
