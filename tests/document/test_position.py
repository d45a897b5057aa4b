"""
Tests for logical path resolution.
"""

import random

import pytest
from lsprotocol.types import Position

from composels.document.compose_document import ComposeDocument, PositionOutOfRangeError
from composels.document.position import (
    REGION_COMMENT,
    REGION_KEY,
    REGION_SEP,
    REGION_START,
    REGION_VALUE,
    PositionInfo,
    resolve_position,
)


def resolve(text: str, line: int, character: int) -> PositionInfo:
    document = ComposeDocument.parse("file:///test/docker-compose.yml", text)
    return resolve_position(document, Position(line=line, character=character))


SCENARIO = "version: '3.4'\n\nservices:\n    foo:\n        image: bar\n"

MIXED = (
    "version: '3.4'\n"
    "# services follow\n"
    "services:\n"
    "  web:\n"
    "    image: nginx   # pinned later\n"
    "    ports: [80, 443]\n"
    "    volumes:\n"
    "      - ./data:/data\n"
    "      - target: /cache\n"
    "\n"
)

FRAGMENTS = [
    "a", "web", " ", "  ", "\n", "\t", ":", ": ", "- ", "-", "? ", ",", "[", "]", "{", "}",
    "\"", "'", "#", " # c", "&x", "*x", "!t", "|", ">", "---", "x:", "80:80",
]


def assert_every_position_resolves(text: str) -> None:
    document = ComposeDocument.parse("file:///test/docker-compose.yml", text)

    for line in range(document.line_count):
        for character in range(len(document.line_at(line)) + 1):
            info = resolve_position(document, Position(line=line, character=character))
            assert info.logical_path.startswith("/"), (text, line, character)


class TestScenario:

    def test_root_key(self):
        info = resolve(SCENARIO, 0, 3)

        assert info.logical_path == "/version"
        assert info.indent_depth == 0
        assert info.region == REGION_KEY

    def test_service_key(self):
        info = resolve(SCENARIO, 3, 5)

        assert info.logical_path == "/services/foo"
        assert info.indent_depth == 1

    def test_blank_root_line(self):
        info = resolve(SCENARIO, 1, 0)

        assert info.logical_path == "/"
        assert info.indent_depth == 0

    def test_nested_value(self):
        info = resolve(SCENARIO, 4, 16)

        assert info.logical_path == "/services/foo/<value>"
        assert info.indent_depth == 2
        assert info.region == REGION_VALUE


class TestProperties:

    def test_every_position_resolves_to_a_rooted_path(self):
        document = ComposeDocument.parse("file:///test/docker-compose.yml", MIXED)

        for line in range(document.line_count):
            for character in range(len(document.line_at(line)) + 1):
                info = resolve_position(document, Position(line=line, character=character))
                assert info.logical_path.startswith("/")
                assert "//" not in info.logical_path

    @pytest.mark.parametrize(
        "text",
        ["[[|}&", "[[|}&x:\tb&x'", "- \"\n  - [a: {b\n:", "a: b: c\n  - d\n]"],
    )
    def test_malformed_text_resolves_everywhere(self, text):
        assert_every_position_resolves(text)

    @pytest.mark.parametrize("seed", range(40))
    def test_random_malformed_text_resolves_everywhere(self, seed):
        generator = random.Random(seed)
        text = "".join(generator.choice(FRAGMENTS) for _ in range(generator.randint(1, 30)))

        assert_every_position_resolves(text)

    def test_resolution_is_idempotent(self):
        document = ComposeDocument.parse("file:///test/docker-compose.yml", MIXED)
        position = Position(line=5, character=13)

        assert resolve_position(document, position) == resolve_position(document, position)

    @pytest.mark.parametrize("character", range(4, 9))
    def test_every_offset_in_a_key_resolves_to_the_key(self, character):
        info = resolve(MIXED, 4, character)

        assert info.logical_path == "/services/web/image"
        assert info.region == REGION_KEY

    def test_key_source_is_kept_verbatim(self):
        info = resolve("'Services':\n  Web:\n    x: 1\n", 1, 3)

        assert info.logical_path == "/'Services'/Web"

    def test_offset_after_colon_is_separator(self):
        info = resolve(MIXED, 4, 10)

        assert info.logical_path == "/services/web/<sep>"
        assert info.region == REGION_SEP
        assert info.indent_depth == 2

    def test_offset_after_colon_at_end_of_line_is_separator(self):
        info = resolve(MIXED, 2, 9)

        assert info.logical_path == "/<sep>"
        assert info.region == REGION_SEP

    @pytest.mark.parametrize("line,character", [(1, 0), (1, 9), (1, 17), (4, 19), (4, 33)])
    def test_comments(self, line, character):
        info = resolve(MIXED, line, character)

        assert info.logical_path == "/<comment>"
        assert info.indent_depth == -1
        assert info.region == REGION_COMMENT

    def test_position_out_of_range(self):
        document = ComposeDocument.parse("file:///test/docker-compose.yml", MIXED)

        with pytest.raises(PositionOutOfRangeError):
            resolve_position(document, Position(line=50, character=0))

        with pytest.raises(PositionOutOfRangeError):
            resolve_position(document, Position(line=0, character=40))


class TestDepth:

    def test_flow_sequence_adds_half(self):
        info = resolve("ports: [80, 443]\n", 0, 13)

        assert info.logical_path == "/ports/<item>/<value>"
        assert info.indent_depth == 0.5

    def test_compact_mapping_adds_half(self):
        info = resolve("ports:\n  - target: 80\n", 1, 5)

        assert info.logical_path == "/ports/<item>/target"
        assert info.indent_depth == 1.5

    def test_block_sequence_adds_one(self):
        info = resolve("services:\n  web:\n    ports:\n      - \n", 3, 8)

        assert info.logical_path == "/services/web/ports/<item>/<start>"
        assert info.indent_depth == 3
        assert info.region == REGION_START

    def test_unquoted_volume_after_colon(self):
        info = resolve("services:\n  web:\n    volumes:\n      - /host:\n", 3, 14)

        assert info.logical_path == "/services/web/volumes/<item>/<sep>"
        assert info.indent_depth == 3.5

    def test_quoted_value_after_dash(self):
        info = resolve('services:\n  web:\n    ports:\n      - "\n', 3, 9)

        assert info.logical_path == "/services/web/ports/<item>/<value>"
        assert info.indent_depth == 3

    def test_merge_key(self):
        text = "x-base: &base\n  a: 1\nweb:\n  <<: *base\n  b: 2\n"

        assert resolve(text, 3, 3).logical_path == "/web/<<"
        assert resolve(text, 4, 2).logical_path == "/web/b"

    def test_merge_key_ancestor_is_an_item(self):
        info = resolve("web:\n  <<:\n    a: 1\n", 2, 4)

        assert info.logical_path == "/web/<item>/a"
        assert info.indent_depth == 2


class TestGaps:

    def test_indented_blank_line_after_service_key(self):
        info = resolve("services:\n  foo:\n    image: redis\n    ", 3, 4)

        assert info.logical_path == "/services/foo/<start>"
        assert info.indent_depth == 2
        assert info.region == REGION_START

    def test_blank_line_at_service_level(self):
        info = resolve("services:\n  foo:\n    image: redis\n  \n", 3, 2)

        assert info.logical_path == "/services/<start>"
        assert info.indent_depth == 1

    def test_cursor_inside_indentation(self):
        info = resolve("services:\n  web:\n    image: nginx\n", 2, 2)

        assert info.logical_path == "/services/<start>"
        assert info.indent_depth == 1

    def test_blank_line_in_empty_document(self):
        info = resolve("", 0, 0)

        assert info == PositionInfo("/", 0, REGION_START)

    def test_blank_line_inside_block_scalar_is_not_a_gap(self):
        info = resolve("command: |\n  echo a\n\n  echo b\n", 2, 0)

        assert info.logical_path == "/<value>"
        assert info.region == REGION_VALUE

    def test_blank_line_inside_flow_collection_is_not_a_gap(self):
        info = resolve("ports: [\n  80,\n\n  443]\n", 2, 0)

        assert info.logical_path == "/ports/<item>/<value>"
