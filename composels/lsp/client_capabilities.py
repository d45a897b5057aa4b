"""
Client capability flags the Compose server cares about.

Besides the standard LSP capabilities, the client can announce two
experimental extensions:

    experimental.documentSettings = {request, notify}
        The client answers `$/textDocument/documentSettings` requests and/or
        pushes `$/textDocument/documentSettings/didChange` notifications.

    experimental.alternateYamlLanguageService = {syntaxValidation, ...}
        Another YAML language service already provides these features, so
        this server switches its own versions off.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lsprotocol.types import ClientCapabilities


def read_field(source: Any, name: str, default: Any = None) -> Any:
    """Read a camelCase field from a JSON object or a structured params object."""
    if source is None:
        return default
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


@dataclass(frozen=True)
class DocumentSettingsCapabilities:
    request: bool = False
    notify: bool = False


@dataclass(frozen=True)
class AlternateYamlLanguageServiceCapabilities:
    syntax_validation: bool = False
    schema_validation: bool = False
    basic_completions: bool = False
    advanced_completions: bool = False
    service_startup_code_lens: bool = False
    hover: bool = False
    image_links: bool = False
    formatting: bool = False

    @classmethod
    def from_json(cls, value: Any) -> AlternateYamlLanguageServiceCapabilities:
        return cls(
            syntax_validation=bool(read_field(value, "syntaxValidation", False)),
            schema_validation=bool(read_field(value, "schemaValidation", False)),
            basic_completions=bool(read_field(value, "basicCompletions", False)),
            advanced_completions=bool(read_field(value, "advancedCompletions", False)),
            service_startup_code_lens=bool(read_field(value, "serviceStartupCodeLens", False)),
            hover=bool(read_field(value, "hover", False)),
            image_links=bool(read_field(value, "imageLinks", False)),
            formatting=bool(read_field(value, "formatting", False)),
        )


@dataclass(frozen=True)
class ComposeClientCapabilities:
    document_settings: DocumentSettingsCapabilities = field(
        default_factory=DocumentSettingsCapabilities
    )
    alternate_yaml_language_service: AlternateYamlLanguageServiceCapabilities = field(
        default_factory=AlternateYamlLanguageServiceCapabilities
    )
    supports_document_links: bool = False
    supports_publish_diagnostics: bool = False
    supports_active_parameter: bool = False

    @classmethod
    def from_client_capabilities(
        cls, capabilities: ClientCapabilities | None
    ) -> ComposeClientCapabilities:
        if capabilities is None:
            return cls()

        experimental = capabilities.experimental
        settings = read_field(experimental, "documentSettings")
        text_document = capabilities.text_document
        signature_help = text_document.signature_help if text_document else None
        signature_information = signature_help.signature_information if signature_help else None

        return cls(
            document_settings=DocumentSettingsCapabilities(
                request=bool(read_field(settings, "request", False)),
                notify=bool(read_field(settings, "notify", False)),
            ),
            alternate_yaml_language_service=AlternateYamlLanguageServiceCapabilities.from_json(
                read_field(experimental, "alternateYamlLanguageService")
            ),
            supports_document_links=(
                text_document is not None and text_document.document_link is not None
            ),
            supports_publish_diagnostics=(
                text_document is not None and text_document.publish_diagnostics is not None
            ),
            supports_active_parameter=bool(
                signature_information is not None
                and signature_information.active_parameter_support
            ),
        )
