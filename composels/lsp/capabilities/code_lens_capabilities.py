"""
"Run" code lenses over the services of a Compose file.

Works on the PyYAML node graph, so a document that does not compose has no
lenses.
"""

from __future__ import annotations

import yaml
from lsprotocol.types import CodeLens, Command

from composels.lsp.capabilities.capabilities import CodeLensCapability
from composels.lsp.context import ProviderRequest

RUN_ALL_COMMAND = "vscode-docker.compose.up"
RUN_SERVICE_COMMAND = "vscode-docker.compose.up.subset"


def find_mapping_entry(
    node: yaml.Node | None, key: str
) -> tuple[yaml.ScalarNode, yaml.Node] | None:
    """The (key node, value node) pair for `key` in a mapping node."""
    if not isinstance(node, yaml.MappingNode):
        return None
    for key_node, value_node in node.value:
        if isinstance(key_node, yaml.ScalarNode) and key_node.value == key:
            return key_node, value_node
    return None


class ServiceStartupCodeLensCapability(CodeLensCapability):
    @property
    def name(self) -> str:
        return "service_startup_code_lens"

    @property
    def description(self) -> str:
        return "Run all services, or a single service, from the editor"

    async def can_handle(self, request: ProviderRequest) -> bool:
        return not request.client.alternate_yaml_language_service.service_startup_code_lens

    async def code_lenses(self, request: ProviderRequest) -> list[CodeLens] | None:
        document = request.document
        services = find_mapping_entry(document.yaml_root, "services")
        if services is None:
            return None

        services_key, services_value = services
        if not isinstance(services_value, yaml.MappingNode):
            return None

        results = [
            CodeLens(
                range=document.range_at(services_key.start_mark.index, services_key.end_mark.index),
                command=Command(
                    title="$(run-all) Run All Services",
                    command=RUN_ALL_COMMAND,
                    arguments=[document.uri],
                ),
            )
        ]

        for key_node, _ in services_value.value:
            if request.token.is_cancellation_requested:
                return None
            if not isinstance(key_node, yaml.ScalarNode):
                continue
            results.append(
                CodeLens(
                    range=document.range_at(key_node.start_mark.index, key_node.end_mark.index),
                    command=Command(
                        title="$(play) Run Service",
                        command=RUN_SERVICE_COMMAND,
                        arguments=[document.uri, None, [key_node.value]],
                    ),
                )
            )

        return results
