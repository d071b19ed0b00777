"""Rendering adapters - turn annotations into final markup.

The compositor only decides where markup goes; a Formatter decides what the
markup is. HtmlFormatter reproduces the documentation site's inline HTML
(colored spans with tooltips, links for command keywords).

describe_segments offers a second rendering: a flat list of (text, tags)
segments covering a whole argument vector, suitable for syntax highlighters
that take pre-split tokens.
"""

import html
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from cliannotate.models import (
    AnnotationType,
    CommandSpec,
    DescribeResult,
    Token,
    TokenType,
    component_description,
)


class Formatter(Protocol):
    """Produces the opening and closing markup for one annotated span."""

    def format(
        self, kind: AnnotationType, description: str | None, href: str | None
    ) -> tuple[str, str]:
        ...


class HtmlFormatter:
    """Inline HTML: ``<span>`` for plain spans, ``<a>`` for linked ones.

    Colors reference CSS custom properties named after the span type
    (``var(--cli-color-block-keyword)``), so themes stay in the stylesheet.
    Attribute values are HTML-escaped. The command line text is not: a
    line such as ``sort < in > out`` is only valid HTML when the annotator
    escapes it (see escape_text).
    """

    def __init__(self, color_var_prefix: str = "--cli-color-block", link_target: str = "_blank"):
        self.color_var_prefix = color_var_prefix
        self.link_target = link_target

    def format(
        self, kind: AnnotationType, description: str | None, href: str | None
    ) -> tuple[str, str]:
        tag_name = "a" if href is not None else "span"

        attributes = f'style="color: var({self.color_var_prefix}-{kind.value});"'

        if description is not None:
            attributes += f' data-tooltip="{html.escape(description, quote=True)}"'

        if href is not None:
            attributes += f' href="{html.escape(href, quote=True)}" target="{self.link_target}"'

        return f"<{tag_name} {attributes}>", f"</{tag_name}>"


def wrap_block(content: str, inline: bool) -> str:
    """Wrap annotated lines as inline code or as a code block."""
    if inline:
        return f"<code>{content}</code>"
    return f'<div class="custom-code-block">{content}</div>'


def escape_text(text: str) -> str:
    """Escape line text for an HTML text node (quotes are left alone)."""
    return html.escape(text, quote=False)


def escaped_offsets(text: str, escape: Callable[[str], str]) -> list[int]:
    """Map each offset of text to the matching offset in escape(text).

    escape must work character by character, as escape_text does.

    Returns:
        len(text) + 1 positions, so a span ending at len(text) maps too
    """
    positions = [0]
    for char in text:
        positions.append(positions[-1] + len(escape(char)))
    return positions


@dataclass(frozen=True)
class Segment:
    """A run of text with the classification of the token it belongs to."""

    text: str
    type: TokenType
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "tags": {"type": self.type.value, "description": self.description},
        }


def token_description(token: Token, spec: CommandSpec | None) -> str | None:
    """Look up the help text shown for a token.

    Keywords show the command summary; options, values and positionals show
    the description of the component they matched.
    """
    if spec is None:
        return None

    if token.type is TokenType.KEYWORD:
        return spec.description

    if token.type in (TokenType.OPTION, TokenType.VALUE, TokenType.POSITIONAL):
        if token.component_id is None or token.component_id >= len(spec.components):
            return None
        return component_description(spec.components[token.component_id])

    if token.type is TokenType.UNKNOWN:
        return None

    raise ValueError(f"Unknown token type: {token.type!r}")


def describe_segments(
    args: Sequence[str], result: DescribeResult, spec: CommandSpec | None = None
) -> list[Segment]:
    """Split an argument vector into classified segments.

    Arguments are joined with single spaces; the spaces and any part of an
    argument not covered by a token become ``unknown`` segments.

    Args:
        args: Argument vector passed to the oracle
        result: Oracle answer for args
        spec: Specification of the resolved command, for descriptions

    Returns:
        Segments whose texts concatenate to " ".join(args)
    """
    by_arg: dict[int, list[Token]] = {}
    for token in result.tokens:
        by_arg.setdefault(token.arg_index, []).append(token)

    segments: list[Segment] = []

    for arg_index, arg in enumerate(args):
        if arg_index > 0:
            segments.append(Segment(text=" ", type=TokenType.UNKNOWN))

        cursor = 0
        for token in sorted(by_arg.get(arg_index, []), key=lambda t: t.slice.start):
            start = max(token.slice.start, cursor)
            end = min(token.slice.end, len(arg))
            if end <= start:
                continue

            if start > cursor:
                segments.append(Segment(text=arg[cursor:start], type=TokenType.UNKNOWN))

            segments.append(
                Segment(
                    text=arg[start:end],
                    type=token.type,
                    description=token_description(token, spec),
                )
            )
            cursor = end

        if cursor < len(arg):
            segments.append(Segment(text=arg[cursor:], type=TokenType.UNKNOWN))

    return segments


__all__ = [
    "Formatter",
    "HtmlFormatter",
    "Segment",
    "describe_segments",
    "escape_text",
    "escaped_offsets",
    "token_description",
    "wrap_block",
]
