"""
Tests for sub-provider dispatch and the CapabilityManager.
"""

import asyncio
from unittest.mock import AsyncMock, Mock, patch

import pytest
from lsprotocol.types import (
    CodeLensParams,
    CompletionItem,
    CompletionList,
    CompletionParams,
    MessageType,
    ParameterInformation,
    Position,
    SignatureHelp,
    SignatureHelpParams,
    SignatureInformation,
    TextDocumentIdentifier,
)
from pygls.exceptions import JsonRpcInvalidParams

from composels.document.position import resolve_position
from composels.lsp.capabilities.capabilities import (
    COMPLETION,
    SIGNATURE_HELP,
    CapabilityManager,
    CompletionCapability,
    SignatureHelpCapability,
    dispatch,
    first_result,
    union_results,
)
from composels.lsp.capabilities.completion_capabilities import (
    PortsCompletionCapability,
    ServiceCompletionCapability,
)
from composels.lsp.client_capabilities import (
    AlternateYamlLanguageServiceCapabilities,
    ComposeClientCapabilities,
)
from composels.lsp.context import RequestContext
from composels.lsp.document_settings import DocumentSettings
from composels.workspace.cache import DocumentCache

URI = "file:///test/docker-compose.yml"
TEXT = "services:\n  foo:\n    image: redis\n    "


class FakeCompletion(CompletionCapability):
    def __init__(self, server, label=None, items=None, delay=0.0, error=None, handles=True):
        super().__init__(server)
        self._name = label or "fake"
        self.items = items
        self.delay = delay
        self.error = error
        self.handles = handles
        self.requests = []
        self.finished = False

    @property
    def name(self):
        return self._name

    @property
    def description(self):
        return "Fake completion"

    async def can_handle(self, request):
        return self.handles

    async def complete(self, request):
        self.requests.append(request)
        await asyncio.sleep(self.delay)
        self.finished = True
        if self.error is not None:
            raise self.error
        return self.items


class FakeSignatureHelp(SignatureHelpCapability):
    def __init__(self, server, label, delay=0.0):
        super().__init__(server)
        self.label = label
        self.delay = delay
        self.finished = False

    @property
    def name(self):
        return self.label

    @property
    def description(self):
        return "Fake signature help"

    async def can_handle(self, request):
        return True

    async def signature_help(self, request):
        await asyncio.sleep(self.delay)
        self.finished = True
        if self.label is None:
            return None
        return SignatureHelp(
            signatures=[
                SignatureInformation(
                    label=self.label, parameters=[ParameterInformation(label=self.label)]
                )
            ]
        )


class CooperativeCompletion(FakeCompletion):
    """Polls the token until the request is cancelled."""

    async def complete(self, request):
        while not request.token.is_cancellation_requested:
            await asyncio.sleep(0.001)
        self.finished = True
        return None


@pytest.fixture
def server():
    server = Mock()
    server.window_log_message = Mock()
    server.compose_capabilities = ComposeClientCapabilities()
    server.document_cache = DocumentCache()
    server.document_cache.open(URI, TEXT, 1)
    server.document_settings = None
    return server


@pytest.fixture
def context(server):
    return RequestContext(
        server=server,
        document=server.document_cache.get(URI),
        client=server.compose_capabilities,
    )


def completion_params(line=3, character=4):
    return CompletionParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=line, character=character),
    )


def signature_params():
    return SignatureHelpParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=3, character=4),
    )


class TestReductions:

    def test_union_results(self):
        assert union_results([[1], None, [], [2, 3]]) == [1, 2, 3]

    def test_union_of_nothing_is_none(self):
        assert union_results([None, []]) is None

    def test_first_result_skips_none(self):
        assert first_result([None, "a", "b"]) == "a"
        assert first_result([None, None]) is None


class TestDispatch:

    @pytest.mark.asyncio
    async def test_completion_is_a_union_in_registration_order(self, server, context):
        a = CompletionItem(label="a")
        b = CompletionItem(label="b")
        providers = [
            FakeCompletion(server, "slow", [a], delay=0.02),
            FakeCompletion(server, "empty", None),
            FakeCompletion(server, "fast", [b]),
            FakeCompletion(server, "skipped", [CompletionItem(label="c")], handles=False),
        ]

        result = await dispatch(COMPLETION, completion_params(), context, providers)

        assert result == [a, b]
        assert providers[3].requests == []

    @pytest.mark.asyncio
    async def test_duplicates_are_kept(self, server, context):
        item = CompletionItem(label="a", insert_text="a")
        providers = [FakeCompletion(server, "one", [item]), FakeCompletion(server, "two", [item])]

        result = await dispatch(COMPLETION, completion_params(), context, providers)

        assert result == [item, item]

    @pytest.mark.asyncio
    async def test_signature_help_first_wins_and_all_run(self, server, context):
        providers = [
            FakeSignatureHelp(server, None),
            FakeSignatureHelp(server, "first", delay=0.02),
            FakeSignatureHelp(server, "second"),
        ]

        result = await dispatch(SIGNATURE_HELP, signature_params(), context, providers)

        assert result.signatures[0].label == "first"
        assert all(provider.finished for provider in providers)

    @pytest.mark.asyncio
    async def test_position_is_resolved_once_and_shared(self, server, context):
        providers = [FakeCompletion(server, "one", []), FakeCompletion(server, "two", [])]

        with patch(
            "composels.lsp.capabilities.capabilities.resolve_position",
            wraps=resolve_position,
        ) as resolver:
            await dispatch(COMPLETION, completion_params(), context, providers)

        assert resolver.call_count == 1
        info = providers[0].requests[0].position_info
        assert info.logical_path == "/services/foo/<start>"
        assert providers[1].requests[0].position_info is info

    @pytest.mark.asyncio
    async def test_requests_without_position_have_no_position_info(self, server, context):
        provider = FakeCompletion(server, "one", [])
        params = CodeLensParams(text_document=TextDocumentIdentifier(uri=URI))

        await dispatch(COMPLETION, params, context, [provider])

        assert provider.requests[0].position_info is None

    @pytest.mark.asyncio
    async def test_one_failure_fails_the_request(self, server, context):
        providers = [
            FakeCompletion(server, "ok", [CompletionItem(label="a")]),
            FakeCompletion(server, "broken", error=ValueError("boom")),
            FakeCompletion(server, "slow", [CompletionItem(label="b")], delay=0.02),
        ]

        with pytest.raises(ValueError, match="boom"):
            await dispatch(COMPLETION, completion_params(), context, providers)

        # Every sub-provider was still joined
        assert all(provider.finished for provider in providers)

    @pytest.mark.asyncio
    async def test_cancellation_sets_token_and_joins(self, server, context):
        provider = CooperativeCompletion(server, "cooperative")

        task = asyncio.ensure_future(
            dispatch(COMPLETION, completion_params(), context, [provider])
        )
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert context.token.is_cancellation_requested
        assert provider.finished


class TestCapabilityManager:

    def test_default_capabilities_in_registration_order(self, server):
        manager = CapabilityManager(server)

        completions = manager.get_capabilities_by_type(CompletionCapability)

        assert [capability.name for capability in completions] == [
            "root_completion",
            "service_completion",
            "build_completion",
            "ports_completion",
            "volumes_completion",
        ]
        assert isinstance(manager.get_capability("ports_completion"), PortsCompletionCapability)
        assert manager.get_capability("missing") is None

    @pytest.mark.asyncio
    async def test_completion_namespace_isolation(self, server):
        manager = CapabilityManager(server)

        result = await manager.handle_completion(completion_params())

        assert isinstance(result, CompletionList)
        assert result.is_incomplete is False
        labels = [item.label for item in result.items]
        assert "build:" in labels
        assert not any("containerPort" in (item.insert_text or "") for item in result.items)

    @pytest.mark.asyncio
    async def test_no_items_is_no_result(self, server):
        manager = CapabilityManager(server)

        result = await manager.handle_completion(completion_params(line=2, character=16))

        assert result is None

    @pytest.mark.asyncio
    async def test_completion_uses_document_settings(self, server):
        server.document_settings = Mock()
        server.document_settings.get = AsyncMock(return_value=DocumentSettings(tab_size=4))
        manager = CapabilityManager(
            server, {"service_completion": ServiceCompletionCapability(server)}
        )

        result = await manager.handle_completion(completion_params())

        long_build = [item for item in result.items if item.detail == "Long form"][0]
        assert long_build.insert_text.startswith("build:\n    context: ")

    @pytest.mark.asyncio
    async def test_unknown_document(self, server):
        manager = CapabilityManager(server)
        params = CompletionParams(
            text_document=TextDocumentIdentifier(uri="file:///missing.yml"),
            position=Position(line=0, character=0),
        )

        with pytest.raises(JsonRpcInvalidParams):
            await manager.handle_completion(params)

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_raised(self, server):
        manager = CapabilityManager(
            server, {"broken": FakeCompletion(server, "broken", error=RuntimeError("boom"))}
        )

        with pytest.raises(RuntimeError):
            await manager.handle_completion(completion_params())

        server.window_log_message.assert_called_once()
        message = server.window_log_message.call_args[0][0]
        assert message.type == MessageType.Error
        assert "boom" in message.message

    @pytest.mark.asyncio
    async def test_alternate_service_disables_basic_completions(self, server):
        server.compose_capabilities = ComposeClientCapabilities(
            alternate_yaml_language_service=AlternateYamlLanguageServiceCapabilities(
                basic_completions=True
            )
        )
        manager = CapabilityManager(server)

        result = await manager.handle_completion(completion_params())

        assert result is None

    def test_register_all_is_idempotent(self, server):
        capability = Mock()
        manager = CapabilityManager(server, {"mock": capability})

        manager.register_all()
        manager.register_all()

        capability.register.assert_called_once()


@pytest.mark.asyncio
async def test_completion_without_position_info_returns_none(server, context):
    from composels.lsp.context import ProviderRequest

    request = ProviderRequest(params=completion_params(), context=context)

    assert await ServiceCompletionCapability(server).complete(request) is None
