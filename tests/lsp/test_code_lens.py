"""
Tests for the service startup code lenses.
"""

from unittest.mock import Mock

import pytest
from lsprotocol.types import CodeLensParams, Position, Range, TextDocumentIdentifier

from composels.document.compose_document import ComposeDocument
from composels.lsp.capabilities.capabilities import CODE_LENS, dispatch
from composels.lsp.capabilities.code_lens_capabilities import (
    RUN_ALL_COMMAND,
    RUN_SERVICE_COMMAND,
    ServiceStartupCodeLensCapability,
)
from composels.lsp.client_capabilities import (
    AlternateYamlLanguageServiceCapabilities,
    ComposeClientCapabilities,
)
from composels.lsp.context import RequestContext

URI = "file:///test/docker-compose.yml"
TEXT = "services:\n  web:\n    image: nginx\n  db:\n    image: postgres\n"


def make_context(text, client=None):
    return RequestContext(
        server=Mock(),
        document=ComposeDocument.parse(URI, text),
        client=client or ComposeClientCapabilities(),
    )


async def lenses(context):
    params = CodeLensParams(text_document=TextDocumentIdentifier(uri=URI))
    return await dispatch(
        CODE_LENS, params, context, [ServiceStartupCodeLensCapability(context.server)]
    )


@pytest.mark.asyncio
async def test_run_all_and_run_service_lenses():
    result = await lenses(make_context(TEXT))

    assert len(result) == 3
    run_all, web, db = result
    assert run_all.command.command == RUN_ALL_COMMAND
    assert run_all.command.arguments == [URI]
    assert run_all.range == Range(
        start=Position(line=0, character=0),
        end=Position(line=0, character=8),
    )
    assert web.command.command == RUN_SERVICE_COMMAND
    assert web.command.arguments == [URI, None, ["web"]]
    assert web.range == Range(
        start=Position(line=1, character=2),
        end=Position(line=1, character=5),
    )
    assert db.command.arguments == [URI, None, ["db"]]


@pytest.mark.asyncio
async def test_no_services():
    assert await lenses(make_context("version: '3'\n")) is None


@pytest.mark.asyncio
async def test_document_that_does_not_compose():
    assert await lenses(make_context("services:\n  web: [\n")) is None


@pytest.mark.asyncio
async def test_cancelled_request_returns_nothing():
    context = make_context(TEXT)
    context.token.cancel()

    assert await lenses(context) is None


@pytest.mark.asyncio
async def test_alternate_service_provides_lenses():
    client = ComposeClientCapabilities(
        alternate_yaml_language_service=AlternateYamlLanguageServiceCapabilities(
            service_startup_code_lens=True
        )
    )

    assert await lenses(make_context(TEXT, client)) is None
