"""
Text Synchronization Manager

Manages LSP text sync events and provides hook extension points
for the document cache and capabilities to react to document lifecycle events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

from lsprotocol.types import (
    DidChangeTextDocumentParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    LogMessageParams,
    MessageType,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
)

if TYPE_CHECKING:
    from composels.lsp.compose_language_server import ComposeLanguageServer


# Type aliases for hook signatures
OnOpenHook = Callable[[DidOpenTextDocumentParams], Awaitable[None]]
OnChangeHook = Callable[[DidChangeTextDocumentParams], Awaitable[None]]
OnCloseHook = Callable[[DidCloseTextDocumentParams], Awaitable[None]]

P = TypeVar("P")


class TextSyncManager:
    """
    Manages text document synchronization and hook broadcasting.

    Design Principles:
    - Text sync is infrastructure, NOT a capability
    - Hooks run in registration order
    - Errors are isolated (one hook failure doesn't affect others)

    The document cache registers its hooks first, so every later hook
    already sees the new snapshot.

    Usage:
        text_sync = TextSyncManager(server)
        text_sync.register_handlers()
        server.text_sync_manager = text_sync

        server.document_cache.register_text_sync_hooks()
    """

    def __init__(self, server: ComposeLanguageServer) -> None:
        self.server = server

        self._on_open_hooks: list[OnOpenHook] = []
        self._on_change_hooks: list[OnChangeHook] = []
        self._on_close_hooks: list[OnCloseHook] = []

    def add_on_open_hook(self, hook: OnOpenHook) -> None:
        """Register a hook for document open events."""
        self._on_open_hooks.append(hook)

    def add_on_change_hook(self, hook: OnChangeHook) -> None:
        """
        Register a hook for document change events.

        Warning:
            Change hooks run on every keystroke. Anything slow belongs
            behind a debounce.
        """
        self._on_change_hooks.append(hook)

    def add_on_close_hook(self, hook: OnCloseHook) -> None:
        """Register a hook for document close events."""
        self._on_close_hooks.append(hook)

    async def _broadcast(
        self,
        event: str,
        hooks: list[Callable[[P], Awaitable[None]]],
        params: P,
    ) -> None:
        for hook in hooks:
            try:
                await hook(params)
            except Exception as e:
                self.server.window_log_message(
                    LogMessageParams(
                        type=MessageType.Error,
                        message=f"Error in {event} hook {getattr(hook, '__name__', hook)}: "
                                f"{type(e).__name__}: {e}"
                    )
                )

    async def _broadcast_on_open(self, params: DidOpenTextDocumentParams) -> None:
        await self._broadcast("on_open", self._on_open_hooks, params)

    async def _broadcast_on_change(self, params: DidChangeTextDocumentParams) -> None:
        await self._broadcast("on_change", self._on_change_hooks, params)

    async def _broadcast_on_close(self, params: DidCloseTextDocumentParams) -> None:
        await self._broadcast("on_close", self._on_close_hooks, params)

    def register_handlers(self) -> None:
        """
        Register LSP text synchronization handlers with the server.

        This should be called once during server creation, BEFORE the
        document cache and capabilities add their hooks.

        Registers handlers for:
        - textDocument/didOpen
        - textDocument/didChange
        - textDocument/didClose
        """

        @self.server.feature(TEXT_DOCUMENT_DID_OPEN)
        async def did_open(
            ls: ComposeLanguageServer,
            params: DidOpenTextDocumentParams,
        ) -> None:
            ls.window_log_message(
                LogMessageParams(
                    type=MessageType.Info,
                    message=f"Document opened: {params.text_document.uri}"
                )
            )
            await self._broadcast_on_open(params)

        @self.server.feature(TEXT_DOCUMENT_DID_CHANGE)
        async def did_change(
            ls: ComposeLanguageServer,
            params: DidChangeTextDocumentParams,
        ) -> None:
            # Every keystroke lands here, so only at Log level
            ls.window_log_message(
                LogMessageParams(
                    type=MessageType.Log,
                    message=f"Document changed: {params.text_document.uri} "
                            f"(version {params.text_document.version})"
                )
            )
            await self._broadcast_on_change(params)

        @self.server.feature(TEXT_DOCUMENT_DID_CLOSE)
        async def did_close(
            ls: ComposeLanguageServer,
            params: DidCloseTextDocumentParams,
        ) -> None:
            ls.window_log_message(
                LogMessageParams(
                    type=MessageType.Info,
                    message=f"Document closed: {params.text_document.uri}"
                )
            )
            await self._broadcast_on_close(params)
