from lsprotocol.types import (
    INITIALIZE,
    TEXT_DOCUMENT_CODE_LENS,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DOCUMENT_LINK,
    TEXT_DOCUMENT_HOVER,
    TEXT_DOCUMENT_SIGNATURE_HELP,
    CodeLensOptions,
    CodeLensParams,
    CompletionOptions,
    CompletionParams,
    DocumentLinkOptions,
    DocumentLinkParams,
    HoverParams,
    InitializeParams,
    LogMessageParams,
    MessageType,
    SignatureHelpOptions,
    SignatureHelpParams,
)

from composels.lsp.capabilities.capabilities import CapabilityManager
from composels.lsp.client_capabilities import ComposeClientCapabilities, read_field
from composels.lsp.compose_language_server import ComposeLanguageServer
from composels.lsp.document_settings import DocumentSettingsManager
from composels.lsp.text_sync_manager import TextSyncManager
from composels.workspace.cache import DocumentCache

COMPLETION_TRIGGER_CHARACTERS = ["-", ":", " ", '"']
SIGNATURE_HELP_TRIGGER_CHARACTERS = [":", "/"]


def create_server() -> ComposeLanguageServer:
    """
    Creates and returns a configured Language Server instance.

    The LanguageServer class from pygls handles:
    - JSON-RPC communication with clients (editors)
    - Request/response lifecycle
    - Notifications and event handling
    """
    server = ComposeLanguageServer("composels", "0.1.0")

    # Initialize TextSyncManager BEFORE everything else
    # so the cache and capabilities can register hooks.
    server.text_sync_manager = TextSyncManager(server)
    server.text_sync_manager.register_handlers()

    # The cache hooks run first, so later hooks see the new snapshot
    server.document_cache = DocumentCache(server=server)
    server.document_cache.register_text_sync_hooks()

    server.document_settings = DocumentSettingsManager(server)
    server.document_settings.register()

    server.capability_manager = CapabilityManager(server)
    server.capability_manager.register_all()

    @server.feature(INITIALIZE)
    async def initialize(ls: ComposeLanguageServer, params: InitializeParams):
        """
        Read what the client supports and the initialization options.
        """
        ls.compose_capabilities = ComposeClientCapabilities.from_client_capabilities(
            params.capabilities
        )

        delay = read_field(params.initialization_options, "diagnosticDelay")
        if isinstance(delay, (int, float)) and delay >= 0:
            ls.diagnostic_delay = delay / 1000

        if ls.document_cache is not None:
            ls.document_cache.position_codec = ls.workspace.position_codec

        if any(vars(ls.compose_capabilities.alternate_yaml_language_service).values()):
            ls.window_log_message(
                LogMessageParams(
                    MessageType.Info,
                    "An alternate YAML language service is present. "
                    "Features it already provides are disabled.",
                )
            )

        ls.window_log_message(
            LogMessageParams(MessageType.Info, f"{ls.name} {ls.version} initialized")
        )

    # Register aggregated handlers
    @server.feature(
        TEXT_DOCUMENT_COMPLETION,
        CompletionOptions(
            trigger_characters=COMPLETION_TRIGGER_CHARACTERS, resolve_provider=False
        ),
    )
    async def completion(ls: ComposeLanguageServer, params: CompletionParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_completion(params)
        return None

    @server.feature(
        TEXT_DOCUMENT_SIGNATURE_HELP,
        SignatureHelpOptions(trigger_characters=SIGNATURE_HELP_TRIGGER_CHARACTERS),
    )
    async def signature_help(ls: ComposeLanguageServer, params: SignatureHelpParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_signature_help(params)
        return None

    @server.feature(TEXT_DOCUMENT_HOVER)
    async def hover(ls: ComposeLanguageServer, params: HoverParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_hover(params)
        return None

    @server.feature(TEXT_DOCUMENT_CODE_LENS, CodeLensOptions(resolve_provider=False))
    async def code_lens(ls: ComposeLanguageServer, params: CodeLensParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_code_lens(params)
        return None

    @server.feature(TEXT_DOCUMENT_DOCUMENT_LINK, DocumentLinkOptions(resolve_provider=False))
    async def document_link(ls: ComposeLanguageServer, params: DocumentLinkParams):
        if ls.capability_manager:
            return await ls.capability_manager.handle_document_links(params)
        return None

    return server
