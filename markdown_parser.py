#!/usr/bin/env python3
"""
Markdown AST Parser and Tag Extractor

This module provides markdown document parsing and the extraction steps
the rule engines consume, using markdown-it-py for AST generation.

Key Features:
- Parse markdown to AST using markdown-it-py
- Split a YAML header from the document body
- Extract raw HTML tag occurrences with line and column
- Walk block and inline tokens as typed nodes
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import yaml
from markdown_it import MarkdownIt
from markdown_it.token import Token


# Opening, closing and self-closing tags; quoted attribute values may contain '>'
TAG_PATTERN = re.compile(
    r"<(/)?([A-Za-z][A-Za-z0-9-]*)(?:\s(?:\"[^\"]*\"|'[^']*'|[^<>\"'])*)?/?>"
)

COMMENT_PATTERN = re.compile(r"<!--.*?-->", re.DOTALL)

FRONTMATTER_PATTERN = re.compile(r"^---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|$)", re.DOTALL)


@dataclass(frozen=True)
class TagOccurrence:
    """
    A raw HTML tag found in document source.

    Attributes:
        tag_name: Tag name as written (case preserved)
        full_text: Full tag text, e.g. '<h1 class="x">'
        is_closing: True for closing tags such as '</h1>'
        line_number: 1-based line in the source file
        column: 1-based column, 0 when unknown
    """
    tag_name: str
    full_text: str
    is_closing: bool
    line_number: int = 0
    column: int = 0


@dataclass
class TokenNode:
    """
    A token in the document tree with its source location.

    Attributes:
        token: Underlying markdown-it-py token
        source_file: Document the token belongs to
        line_number: 1-based line inherited from the nearest mapped token
        parent: Enclosing inline token for inline children
    """
    token: Token
    source_file: str
    line_number: int = 0
    parent: Optional["TokenNode"] = field(default=None, repr=False)

    @property
    def type(self) -> str:
        return self.token.type

    @property
    def content(self) -> str:
        return self.token.content

    @property
    def info(self) -> str:
        return self.token.info

    @property
    def tag(self) -> str:
        return self.token.tag

    def attr(self, name: str) -> Any:
        return self.token.attrGet(name)


# CommonMark preset; raw HTML is kept as html_block/html_inline tokens
_md = MarkdownIt()


def parse_markdown(text: str) -> List[Token]:
    """
    Parse markdown text to AST tokens.

    Example:
        >>> tokens = parse_markdown("# Title\\n\\nParagraph text.")
        >>> tokens[0].type
        'heading_open'
    """
    return _md.parse(text)


def extract_frontmatter(text: str) -> Tuple[Dict[str, Any], str, int]:
    """
    Split a YAML header from markdown text.

    Args:
        text: Full document text

    Returns:
        Tuple of (metadata, body, header_line_count). Metadata is empty
        and header_line_count is 0 when the document has no header.

    Raises:
        ValueError: If the header is not valid YAML or not a mapping

    Example:
        >>> meta, body, offset = extract_frontmatter("---\\ntitle: Intro\\n---\\n# Intro\\n")
        >>> meta, body, offset
        ({'title': 'Intro'}, '# Intro\\n', 3)
    """
    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text, 0

    try:
        metadata = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML header: {e}")

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise ValueError(f"YAML header must be a mapping, found {type(metadata).__name__}")

    header = match.group(0)
    header_lines = header.count("\n") if header.endswith("\n") else header.count("\n") + 1
    return metadata, text[match.end():], header_lines


def _position(text: str, offset: int, first_line: int) -> Tuple[int, int]:
    """Convert a character offset within a token to (line, column)."""
    line = first_line + text.count("\n", 0, offset)
    column = offset - text.rfind("\n", 0, offset)
    return line, column


def _blank_comments(text: str) -> str:
    """Replace HTML comments with spaces, keeping newlines so offsets hold."""
    return COMMENT_PATTERN.sub(lambda m: re.sub(r"[^\n]", " ", m.group(0)), text)


def _tags_in(text: str, first_line: int, source: Optional[str] = None,
             offset: int = 0) -> Iterator[TagOccurrence]:
    """
    Find tags in token text, ignoring anything inside HTML comments.

    When source is given, text starts at offset within source and positions
    are computed against source; otherwise against text itself.
    """
    for match in TAG_PATTERN.finditer(_blank_comments(text)):
        if source is None:
            line, column = _position(text, match.start(), first_line)
        else:
            line, column = _position(source, offset + match.start(), first_line)
        yield TagOccurrence(
            tag_name=match.group(2),
            full_text=match.group(0),
            is_closing=match.group(1) == "/",
            line_number=line,
            column=column,
        )


def extract_tag_occurrences(tokens: List[Token], line_offset: int = 0) -> List[TagOccurrence]:
    """
    Extract raw HTML tag occurrences from HTML block and inline tokens.

    Code spans and fenced code are never scanned.

    Args:
        tokens: Markdown AST tokens from parse_markdown()
        line_offset: Lines preceding the parsed text (e.g. a YAML header)

    Returns:
        Tag occurrences in document order

    Example:
        >>> tokens = parse_markdown("<h1>Title</h1>\\n\\nText <b>bold</b>\\n")
        >>> [t.full_text for t in extract_tag_occurrences(tokens)]
        ['<h1>', '</h1>', '<b>', '</b>']
    """
    occurrences: List[TagOccurrence] = []

    for token in tokens:
        first_line = (token.map[0] if token.map else 0) + 1 + line_offset

        if token.type == "html_block":
            occurrences.extend(_tags_in(token.content, first_line))

        elif token.type == "inline" and token.children:
            _scan_inline(token.children, token.content, 0, first_line, occurrences)

    return occurrences


def _scan_inline(children: List[Token], source: str, cursor: int, first_line: int,
                 occurrences: List[TagOccurrence]) -> int:
    """Collect tags from html_inline children, including those nested in image alt text."""
    for child in children:
        if child.children:
            cursor = _scan_inline(child.children, source, cursor, first_line, occurrences)
            continue
        if not child.content:
            continue
        found = source.find(child.content, cursor)
        if child.type == "html_inline":
            if found >= 0:
                occurrences.extend(_tags_in(child.content, first_line, source, found))
            else:
                # Unlocatable: keep the line, drop the column
                occurrences.extend(
                    TagOccurrence(t.tag_name, t.full_text, t.is_closing, first_line, 0)
                    for t in _tags_in(child.content, first_line)
                )
        if found >= 0:
            cursor = found + len(child.content)
    return cursor


def walk_tokens(tokens: List[Token], source_file: str, line_offset: int = 0) -> Iterator[TokenNode]:
    """
    Walk block tokens and their inline children depth-first.

    Args:
        tokens: Markdown AST tokens from parse_markdown()
        source_file: Document path attached to every node
        line_offset: Lines preceding the parsed text

    Yields:
        TokenNode for every token, parents before children

    Example:
        >>> tokens = parse_markdown("See [docs](https://example.com).")
        >>> [n.type for n in walk_tokens(tokens, "a.md")][:4]
        ['paragraph_open', 'inline', 'text', 'link_open']
    """
    def visit(token_list: List[Token], inherited_line: int,
              parent: Optional[TokenNode]) -> Iterator[TokenNode]:
        for token in token_list:
            line = token.map[0] + 1 + line_offset if token.map else inherited_line
            node = TokenNode(token=token, source_file=source_file, line_number=line, parent=parent)
            yield node
            if token.children:
                yield from visit(token.children, line, node)

    yield from visit(tokens, 0, None)
