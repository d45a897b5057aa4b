"""
Document Settings

Tab size and end-of-line style per document. They come from the client when
it supports the document settings extension, otherwise they are guessed from
the text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from lsprotocol.types import (
    DidCloseTextDocumentParams,
    LogMessageParams,
    MessageType,
)

from composels.lsp.client_capabilities import read_field

if TYPE_CHECKING:
    from composels.document.compose_document import ComposeDocument
    from composels.lsp.compose_language_server import ComposeLanguageServer


DOCUMENT_SETTINGS_REQUEST = "$/textDocument/documentSettings"
DOCUMENT_SETTINGS_NOTIFICATION = "$/textDocument/documentSettings/didChange"

LF = 1
CRLF = 2

DEFAULT_TAB_SIZE = 2

_INDENTED_KEY_LINE = re.compile(r"^( +)[^\s#:][^:]*:[ \t]*$", re.MULTILINE)


@dataclass(frozen=True)
class DocumentSettings:
    tab_size: int = DEFAULT_TAB_SIZE
    eol: int = LF

    @property
    def eol_text(self) -> str:
        return "\r\n" if self.eol == CRLF else "\n"

    @classmethod
    def from_json(cls, value: Any) -> DocumentSettings:
        tab_size = read_field(value, "tabSize", DEFAULT_TAB_SIZE)
        eol = read_field(value, "eol", LF)
        if not isinstance(tab_size, int) or tab_size < 1:
            tab_size = DEFAULT_TAB_SIZE
        return cls(tab_size=tab_size, eol=CRLF if eol == CRLF else LF)


def guess_document_settings(text: str) -> DocumentSettings:
    """
    Guess settings from the text itself.

    End of line is CRLF when the text contains a carriage return. Tab size is
    the indentation of the first indented `key:` line, or 2.
    """
    eol = CRLF if "\r" in text else LF
    match = _INDENTED_KEY_LINE.search(text.replace("\r", ""))
    tab_size = len(match.group(1)) if match else DEFAULT_TAB_SIZE
    return DocumentSettings(tab_size=tab_size, eol=eol)


class DocumentSettingsManager:
    """
    Keeps the settings of open documents.

    Settings pushed by the client win over settings fetched on demand, and
    fetched settings win over the guess. Everything about a document is
    forgotten when it closes.
    """

    def __init__(self, server: ComposeLanguageServer) -> None:
        self.server = server
        self._settings: dict[str, DocumentSettings] = {}

    def register(self) -> None:
        @self.server.feature(DOCUMENT_SETTINGS_NOTIFICATION)
        async def did_change_document_settings(ls: ComposeLanguageServer, params: Any) -> None:
            self.update(params)

        if self.server.text_sync_manager:
            self.server.text_sync_manager.add_on_close_hook(self._on_close)

    def update(self, params: Any) -> None:
        uri = read_field(read_field(params, "textDocument"), "uri")
        if not uri:
            return
        self._settings[uri] = DocumentSettings.from_json(params)

    def forget(self, uri: str) -> None:
        self._settings.pop(uri, None)

    def cached(self, uri: str) -> DocumentSettings | None:
        return self._settings.get(uri)

    async def get(self, document: ComposeDocument) -> DocumentSettings:
        settings = self._settings.get(document.uri)
        if settings is not None:
            return settings

        client = self.server.compose_capabilities
        if client.document_settings.request:
            try:
                result = await self.server.protocol.send_request_async(
                    DOCUMENT_SETTINGS_REQUEST,
                    {"textDocument": {"uri": document.uri}},
                )
            except Exception as e:
                self.server.window_log_message(
                    LogMessageParams(
                        type=MessageType.Warning,
                        message=f"Document settings request failed for {document.uri}: {e}",
                    )
                )
            else:
                if result is not None:
                    settings = DocumentSettings.from_json(result)
                    self._settings[document.uri] = settings
                    return settings

        return guess_document_settings(document.text)

    async def _on_close(self, params: DidCloseTextDocumentParams) -> None:
        self.forget(params.text_document.uri)
