"""
Tests for port and volume signature help.
"""

import re
from unittest.mock import Mock

import pytest
from lsprotocol.types import Position, SignatureHelpParams, TextDocumentIdentifier

from composels.document.compose_document import ComposeDocument
from composels.lsp.capabilities.capabilities import SIGNATURE_HELP, dispatch
from composels.lsp.capabilities.signature_capabilities import (
    PortsSignatureCollection,
    PortsSignatureHelpCapability,
    VolumesSignatureCollection,
    VolumesSignatureHelpCapability,
)
from composels.lsp.client_capabilities import ComposeClientCapabilities
from composels.lsp.context import RequestContext
from composels.lsp.signature.signature_collection import SignatureEntry, active_parameter
from composels.utils.regexp_spans import Span

URI = "file:///test/docker-compose.yml"


class TestPortsSignatures:

    def test_cursor_in_third_parameter(self):
        line = '      - "127.0.0.1:8080:80"'

        signature, parameter = PortsSignatureCollection.get_active_signature(line, 25)

        assert PortsSignatureCollection.entries[signature].label == "hostIp:hostPort:containerPort"
        assert parameter == 2

    def test_host_and_container_port(self):
        line = "      - 8080:80"

        signature, parameter = PortsSignatureCollection.get_active_signature(line, 14)

        assert PortsSignatureCollection.entries[signature].label == "hostPort:containerPort"
        assert parameter == 1

    def test_empty_parameter_after_colon(self):
        signature, parameter = PortsSignatureCollection.get_active_signature("      - 8080:", 13)

        assert PortsSignatureCollection.entries[signature].label == "hostPort:containerPort"
        assert parameter == 1

    def test_protocol(self):
        signature, parameter = PortsSignatureCollection.get_active_signature(
            "      - 8080:80/udp", 18
        )

        assert PortsSignatureCollection.entries[signature].label == "hostPort:containerPort/protocol"
        assert parameter == 2

    def test_cursor_before_first_parameter(self):
        signature, parameter = PortsSignatureCollection.get_active_signature("      - 8080", 7)

        assert PortsSignatureCollection.entries[signature].label == "containerPort"
        assert parameter == 0

    def test_no_matching_signature(self):
        assert PortsSignatureCollection.signature_help("    image: redis", 10) is None

    def test_signature_help_lists_every_signature(self):
        result = PortsSignatureCollection.signature_help("      - 8080:80", 14)

        assert len(result.signatures) == len(PortsSignatureCollection.entries)
        assert result.active_signature == 3
        assert result.active_parameter == 1


class TestVolumesSignatures:

    def test_mode(self):
        signature, parameter = VolumesSignatureCollection.get_active_signature(
            "      - ./data:/data:ro", 22
        )

        assert signature == 0
        assert parameter == 2

    def test_windows_host_path(self):
        signature, parameter = VolumesSignatureCollection.get_active_signature(
            "      - C:\\data:/data", 12
        )

        assert signature == 0
        assert parameter == 0


class TestActiveParameter:

    SPANS = [Span(8, 4, "8080"), Span(13, 2, "80")]

    @pytest.mark.parametrize(
        "column,expected",
        [(0, 0), (8, 0), (9, 0), (12, 0), (13, None), (14, 1), (15, 1), (20, 1)],
    )
    def test_columns(self, column, expected):
        assert active_parameter(self.SPANS, column) == expected

    def test_no_spans(self):
        assert active_parameter([], 3) is None


def test_matcher_must_have_one_group_per_parameter():
    with pytest.raises(ValueError):
        SignatureEntry(label="a:b", parameters=("a", "b"), matcher=re.compile(r"(\d+)"))


@pytest.mark.asyncio
async def test_dispatch_picks_ports_signature():
    text = 'services:\n  web:\n    ports:\n      - "127.0.0.1:8080:80"\n'
    document = ComposeDocument.parse(URI, text)
    server = Mock()
    context = RequestContext(
        server=server,
        document=document,
        client=ComposeClientCapabilities(supports_active_parameter=True),
    )
    params = SignatureHelpParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=3, character=25),
    )

    result = await dispatch(
        SIGNATURE_HELP,
        params,
        context,
        [PortsSignatureHelpCapability(server), VolumesSignatureHelpCapability(server)],
    )

    assert result.active_signature == 0
    assert result.active_parameter == 2


def test_signature_without_active_parameter_support():
    line = '      - "127.0.0.1:8080:80"'

    signature, parameter = PortsSignatureCollection.get_active_signature(
        line, 25, active_parameter_support=False
    )
    result = PortsSignatureCollection.signature_help(line, 25, active_parameter_support=False)

    assert signature == 0
    assert parameter is None
    assert result.active_signature == 0
    assert result.active_parameter is None


@pytest.mark.asyncio
async def test_dispatch_omits_parameter_for_clients_without_support():
    text = 'services:\n  web:\n    ports:\n      - "127.0.0.1:8080:80"\n'
    document = ComposeDocument.parse(URI, text)
    server = Mock()
    context = RequestContext(server=server, document=document, client=ComposeClientCapabilities())
    params = SignatureHelpParams(
        text_document=TextDocumentIdentifier(uri=URI),
        position=Position(line=3, character=25),
    )

    result = await dispatch(SIGNATURE_HELP, params, context, [PortsSignatureHelpCapability(server)])

    assert result.active_signature == 0
    assert result.active_parameter is None
