"""
Per-request context.

Everything a sub-provider needs travels explicitly: the server, the document
snapshot taken when the request arrived, the client capabilities and the
cancellation token shared by every sub-provider of the request.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from composels.utils.cancellation import CancellationToken

if TYPE_CHECKING:
    from composels.document.compose_document import ComposeDocument
    from composels.document.position import PositionInfo
    from composels.lsp.client_capabilities import ComposeClientCapabilities
    from composels.lsp.compose_language_server import ComposeLanguageServer
    from composels.lsp.document_settings import DocumentSettings


@dataclass
class RequestContext:
    server: ComposeLanguageServer
    document: ComposeDocument
    client: ComposeClientCapabilities
    token: CancellationToken = field(default_factory=CancellationToken)
    settings: DocumentSettings | None = None


@dataclass(frozen=True)
class ProviderRequest:
    """
    The request as seen by sub-providers.

    `position_info` is resolved once by the dispatcher and shared; it is None
    for requests that carry no position (code lens, document links).
    """

    params: Any
    context: RequestContext
    position_info: PositionInfo | None = None

    @property
    def document(self) -> ComposeDocument:
        return self.context.document

    @property
    def token(self) -> CancellationToken:
        return self.context.token

    @property
    def client(self) -> ComposeClientCapabilities:
        return self.context.client

    @property
    def line(self) -> str:
        """Text of the line at the cursor, without its line break."""
        return self.document.line_at(self.params.position)

    @property
    def column(self) -> int:
        """Cursor column within `line`, in server units."""
        return self.document.column_at(self.params.position)
