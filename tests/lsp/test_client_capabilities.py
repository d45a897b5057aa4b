from lsprotocol.types import (
    ClientCapabilities,
    ClientSignatureInformationOptions,
    DocumentLinkClientCapabilities,
    PublishDiagnosticsClientCapabilities,
    SignatureHelpClientCapabilities,
    TextDocumentClientCapabilities,
)

from composels.lsp.client_capabilities import (
    AlternateYamlLanguageServiceCapabilities,
    ComposeClientCapabilities,
    read_field,
)


def test_defaults_without_capabilities():
    capabilities = ComposeClientCapabilities.from_client_capabilities(None)

    assert capabilities == ComposeClientCapabilities()
    assert capabilities.supports_document_links is False
    assert capabilities.alternate_yaml_language_service.hover is False


def test_standard_capabilities():
    capabilities = ComposeClientCapabilities.from_client_capabilities(
        ClientCapabilities(
            text_document=TextDocumentClientCapabilities(
                document_link=DocumentLinkClientCapabilities(),
                publish_diagnostics=PublishDiagnosticsClientCapabilities(),
            )
        )
    )

    assert capabilities.supports_document_links is True
    assert capabilities.supports_publish_diagnostics is True


def test_experimental_capabilities():
    capabilities = ComposeClientCapabilities.from_client_capabilities(
        ClientCapabilities(
            experimental={
                "documentSettings": {"request": True, "notify": False},
                "alternateYamlLanguageService": {
                    "syntaxValidation": True,
                    "hover": True,
                    "imageLinks": True,
                },
            }
        )
    )

    assert capabilities.document_settings.request is True
    assert capabilities.document_settings.notify is False
    assert capabilities.alternate_yaml_language_service == AlternateYamlLanguageServiceCapabilities(
        syntax_validation=True, hover=True, image_links=True
    )


def test_read_field():
    class Params:
        tabSize = 4

    assert read_field({"tabSize": 2}, "tabSize") == 2
    assert read_field(Params(), "tabSize") == 4
    assert read_field(None, "tabSize", 8) == 8
    assert read_field({}, "tabSize", 8) == 8


def test_active_parameter_support():
    def capabilities(signature_information):
        return ComposeClientCapabilities.from_client_capabilities(
            ClientCapabilities(
                text_document=TextDocumentClientCapabilities(
                    signature_help=SignatureHelpClientCapabilities(
                        signature_information=signature_information
                    )
                )
            )
        )

    supported = capabilities(
        ClientSignatureInformationOptions(active_parameter_support=True)
    )

    assert supported.supports_active_parameter is True
    assert capabilities(None).supports_active_parameter is False
    assert ComposeClientCapabilities().supports_active_parameter is False
