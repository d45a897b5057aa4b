"""
Completion tables, one per zone of a Compose file.

Built once at import time and never changed afterwards.

    root      top-level keys                  /  or  /<value>
    service   keys of one service             /services/<name>/<start|value>
    build     keys of a long-form build       /services/<name>/build/<start|value>
    ports     entries of a ports list         /services/<name>/ports/<item>/...
    volumes   entries of a volumes list       /services/<name>/volumes/<item>/...
"""

from __future__ import annotations

import re

from lsprotocol.types import CompletionItemKind

from composels.lsp.completion.completion_collection import (
    BARE_WORD_LINE,
    CompletionCollection,
    CompletionEntry,
    patterns,
)

_ROOT_PATHS = patterns(r"/", r"/<value>")
_SERVICE_PATHS = patterns(r"/services/[^/]+/<start>", r"/services/[^/]+/<value>")
_BUILD_PATHS = patterns(r"/services/[^/]+/build/<start>", r"/services/[^/]+/build/<value>")
_PORTS_PATHS = patterns(r"/services/[^/]+/ports/<item>/<(?:start|value)>")
_VOLUMES_ITEM_PATHS = patterns(r"/services/[^/]+/volumes/<item>/<(?:start|value)>")
_VOLUMES_SEP_PATHS = patterns(r"/services/[^/]+/volumes/<item>/<sep>")

# `  -`
_BARE_DASH = re.compile(r"^\s*-\s*$")
# `  - "` or `  - ""`
_DASH_QUOTE = re.compile(r"^\s*-\s*(?:\"\"?|''?)\s*$")
# `  -`, `  - "` or `  - ""`
_DASH_OPTIONAL_QUOTE = re.compile(r"^\s*-\s*(?:\"\"?|''?)?\s*$")
# `  - /host/path:` or `  - "C:\host\path:"`
_ONE_VOLUME_PART = re.compile(r"^\s*-\s*[\"']?(?:[a-zA-Z]:\\)?[^:\"']+:[\"']?\s*$")
# `  - /host/path:/container/path:`
_TWO_VOLUME_PARTS = re.compile(
    r"^\s*-\s*[\"']?(?:[a-zA-Z]:\\)?[^:\"']+:(?:[a-zA-Z]:\\)?[^:\"']+:[\"']?\s*$"
)


def _key(label: str, insert_text: str, paths, depth: float, **kwargs) -> CompletionEntry:
    return CompletionEntry(
        label=label,
        insert_text=insert_text,
        path_patterns=paths,
        indentation_depth=depth,
        matcher=BARE_WORD_LINE,
        **kwargs,
    )


RootCompletionCollection = CompletionCollection(
    "root",
    [
        _key("configs:", "configs:\n", _ROOT_PATHS, 0),
        _key("name:", "name: ${1:projectName}$0", _ROOT_PATHS, 0),
        _key("networks:", "networks:\n", _ROOT_PATHS, 0),
        _key("secrets:", "secrets:\n", _ROOT_PATHS, 0),
        _key("services:", "services:\n", _ROOT_PATHS, 0),
        _key("version:", "version: '${1:version}'$0", _ROOT_PATHS, 0),
        _key("volumes:", "volumes:\n", _ROOT_PATHS, 0),
    ],
)


ServiceCompletionCollection = CompletionCollection(
    "service",
    [
        _key(
            "build:",
            "build: ${1:path}$0",
            _SERVICE_PATHS,
            2,
            detail="Short form",
            documentation="build: <path>",
        ),
        _key(
            "build:",
            "build:\n  context: ${1:contextPath}\n  dockerfile: ${2:Dockerfile}$0",
            _SERVICE_PATHS,
            2,
            detail="Long form",
            documentation="build:\n  context: <contextPath>\n  dockerfile: <Dockerfile>",
        ),
        _key("command:", "command: ${1:command}$0", _SERVICE_PATHS, 2),
        _key("container_name:", "container_name: ${1:name}$0", _SERVICE_PATHS, 2),
        _key("depends_on:", "depends_on:\n  - ${1:serviceName}$0", _SERVICE_PATHS, 2),
        _key("entrypoint:", "entrypoint: ${1:entrypoint}$0", _SERVICE_PATHS, 2),
        _key("env_file:", "env_file: ${1:.env}$0", _SERVICE_PATHS, 2),
        _key("environment:", "environment:\n  ${1:NAME}: ${2:value}$0", _SERVICE_PATHS, 2),
        _key(
            "healthcheck:",
            "healthcheck:\n  test: [\"CMD\", \"${1:command}\"]\n  interval: ${2:30s}\n"
            "  timeout: ${3:10s}\n  retries: ${4:3}$0",
            _SERVICE_PATHS,
            2,
        ),
        _key("image:", "image: ${1:imageName}$0", _SERVICE_PATHS, 2),
        _key("networks:", "networks:\n  - ${1:networkName}$0", _SERVICE_PATHS, 2),
        _key("ports:", "ports:\n  - ${1:port}$0", _SERVICE_PATHS, 2),
        _key(
            "restart:",
            "restart: ${1|no,always,on-failure,unless-stopped|}$0",
            _SERVICE_PATHS,
            2,
        ),
        _key("volumes:", "volumes:\n  - ${1:volume}$0", _SERVICE_PATHS, 2),
    ],
)


BuildCompletionCollection = CompletionCollection(
    "build",
    [
        _key("args:", "args:\n  ${1:NAME}: ${2:value}$0", _BUILD_PATHS, 3),
        _key("context:", "context: ${1:buildContext}$0", _BUILD_PATHS, 3),
        _key("dockerfile:", "dockerfile: ${1:dockerfile}$0", _BUILD_PATHS, 3),
        _key("target:", "target: ${1:stage}$0", _BUILD_PATHS, 3),
    ],
)


_SHORT_PORTS = (
    ("containerPort", "${1:containerPort}"),
    ("hostPort:containerPort", "${1:hostPort}:${2:containerPort}"),
    ("hostPort:containerPort/protocol", "${1:hostPort}:${2:containerPort}/${3|tcp,udp|}"),
    (
        "hostRange:containerRange",
        "${1:hostStart}-${2:hostEnd}:${3:containerStart}-${4:containerEnd}",
    ),
    ("hostIp:hostPort:containerPort", "${1:hostIp}:${2:hostPort}:${3:containerPort}"),
)


def _port(label: str, insert_text: str, matcher: re.Pattern[str], **kwargs) -> CompletionEntry:
    return CompletionEntry(
        label=label,
        insert_text=insert_text,
        path_patterns=_PORTS_PATHS,
        indentation_depth=3,
        matcher=matcher,
        kind=CompletionItemKind.Value,
        advanced=True,
        **kwargs,
    )


PortsCompletionCollection = CompletionCollection(
    "ports",
    [
        *(_port(f'"{label}"', f'"{text}"$0', _BARE_DASH) for label, text in _SHORT_PORTS),
        _port(
            "target:",
            "target: ${1:containerPort}\n  published: ${2:hostPort}\n"
            "  protocol: ${3|tcp,udp|}\n  mode: ${4|host,ingress|}$0",
            _BARE_DASH,
            detail="Long form",
        ),
        *(_port(label, f"{text}$0", _DASH_QUOTE) for label, text in _SHORT_PORTS),
    ],
)


def _volume(
    label: str,
    insert_text: str,
    paths,
    depth: float,
    matcher: re.Pattern[str],
    **kwargs,
) -> CompletionEntry:
    return CompletionEntry(
        label=label,
        insert_text=insert_text,
        path_patterns=paths,
        indentation_depth=depth,
        matcher=matcher,
        kind=CompletionItemKind.Value,
        advanced=True,
        **kwargs,
    )


def _after_colon(label: str, insert_text: str, matcher: re.Pattern[str], **kwargs):
    """
    Entries for text typed after a colon.

    Unquoted, `- /host:` is a compact mapping and the cursor sits on its
    separator. Quoted, `- "/host:"` stays a single scalar.
    """
    return (
        _volume(label, insert_text, _VOLUMES_SEP_PATHS, 3.5, matcher, **kwargs),
        _volume(label, insert_text, _VOLUMES_ITEM_PATHS, 3, matcher, **kwargs),
    )


VolumesCompletionCollection = CompletionCollection(
    "volumes",
    [
        _volume(
            "hostPath:containerPath:mode",
            "${1:hostPath}:${2:containerPath}:${3|ro,rw|}$0",
            _VOLUMES_ITEM_PATHS,
            3,
            _DASH_OPTIONAL_QUOTE,
        ),
        _volume(
            "volumeName:containerPath:mode",
            "${1:volumeName}:${2:containerPath}:${3|ro,rw|}$0",
            _VOLUMES_ITEM_PATHS,
            3,
            _DASH_OPTIONAL_QUOTE,
        ),
        *_after_colon(":containerPath:mode", "${1:containerPath}:${2|ro,rw|}$0", _ONE_VOLUME_PART),
        *_after_colon(":ro", "ro", _TWO_VOLUME_PARTS, detail="Read-only"),
        *_after_colon(":rw", "rw", _TWO_VOLUME_PARTS, detail="Read-write"),
    ],
)
