"""Line annotation pipeline.

For each line: tokenize, pick the oracle named by the first word, describe
the remaining words, remap the oracle's argument-relative annotations to
line offsets, and composite the resulting markup.

A line that cannot be annotated for any reason is emitted unchanged; only
the outcome records why. Lines are independent tasks, gathered in input
order.

Public API (the "studs"):
    LineAnnotator: Annotates lines, blocks and segments against a registry
    LineOutcome: Why a line was or was not annotated
    annotation_directives: Pure remap of annotations to directives
    resolve_link: Documentation URL for a resolved command path
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, replace
from enum import Enum
from urllib.parse import quote, urlsplit, urlunsplit

from cliannotate.compositor import compose
from cliannotate.errors import MalformedOracleResponseError, OracleUnavailableError
from cliannotate.models import Annotation, AnnotationType, ArgPosition, Directive, Word
from cliannotate.oracle import find_command
from cliannotate.registry import CliBinding, OracleRegistry
from cliannotate.rendering import (
    Formatter,
    HtmlFormatter,
    Segment,
    describe_segments,
    escaped_offsets,
)
from cliannotate.retry_handler import safe_error_message
from cliannotate.tokenizer import tokenize

logger = logging.getLogger(__name__)


class LineOutcome(Enum):
    """Result category of annotating one line."""

    ANNOTATED = "annotated"
    NO_WORDS = "no_words"
    COMMENT = "comment"
    NO_ORACLE = "no_oracle"
    UNRESOLVED = "unresolved"
    UNAVAILABLE = "unavailable"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class LineResult:
    """Annotated (or passed-through) line.

    Attributes:
        source: Original line
        output: Line with markup (escaped when the annotator escapes),
            equal to source unless annotated
        outcome: Why the line was or was not annotated
        command: Resolved command path when annotated
    """

    source: str
    output: str
    outcome: LineOutcome
    command: tuple[str, ...] = ()

    @property
    def annotated(self) -> bool:
        return self.outcome is LineOutcome.ANNOTATED


def resolve_link(base_url: str, command: Sequence[str]) -> str:
    """Append each command path segment to the base URL's path.

    Example:
        >>> resolve_link("https://example.com/docs", ["remote", "add"])
        'https://example.com/docs/remote/add'
    """
    parts = urlsplit(base_url)
    path = parts.path.rstrip("/") + "".join(f"/{quote(segment)}" for segment in command)
    return urlunsplit(parts._replace(path=path))


def _line_offset(words: Sequence[Word], position: ArgPosition) -> int:
    if position.arg_index >= len(words):
        raise MalformedOracleResponseError(
            f"Annotation references argument {position.arg_index}, "
            f"but only {len(words)} were given"
        )
    word = words[position.arg_index]
    if position.offset > len(word.text):
        raise MalformedOracleResponseError(
            f"Annotation offset {position.offset} is past the end of argument "
            f"{position.arg_index} ({word.text!r})"
        )
    return word.offset + position.offset


def annotation_directives(
    annotations: Iterable[Annotation],
    words: Sequence[Word],
    command: Sequence[str],
    formatter: Formatter,
    base_url: str | None = None,
) -> list[Directive]:
    """Remap argument-relative annotations to line-relative directives.

    Args:
        annotations: Oracle annotations, in oracle order
        words: Words the annotations' arg indices refer to
        command: Resolved command path, used for keyword links
        formatter: Markup producer
        base_url: Documentation root; keyword spans link below it when set

    Returns:
        One directive per annotation, in the same order

    Raises:
        MalformedOracleResponseError: If an annotation points past the words
            or ends before it starts
    """
    directives = []

    for annotation in annotations:
        if annotation.type is AnnotationType.KEYWORD:
            href = resolve_link(base_url, command) if base_url else None
        elif annotation.type in (AnnotationType.OPTION, AnnotationType.POSITIONAL):
            href = None
        else:
            raise ValueError(f"Unknown annotation type: {annotation.type!r}")

        start = _line_offset(words, annotation.start)
        end = _line_offset(words, annotation.end)
        if end < start:
            raise MalformedOracleResponseError(
                f"Annotation ends at {end} before it starts at {start}"
            )

        prefix, suffix = formatter.format(annotation.type, annotation.description, href)
        directives.append(
            Directive(
                start=start,
                end=end,
                prefix=prefix,
                suffix=suffix,
            )
        )

    return directives


class LineAnnotator:
    """Annotates command lines using the oracles of a registry.

    Example:
        >>> annotator = LineAnnotator(registry)
        >>> result = await annotator.annotate_line("git commit -m msg")
        >>> result.outcome
        <LineOutcome.ANNOTATED: 'annotated'>
    """

    def __init__(
        self,
        registry: OracleRegistry,
        formatter: Formatter | None = None,
        skip_comments: bool = True,
        escape: Callable[[str], str] | None = None,
    ):
        """Initialize line annotator.

        Args:
            registry: CLI name to oracle bindings
            formatter: Markup producer (default: HtmlFormatter)
            skip_comments: Pass through lines starting with '#'
            escape: Per-character text escape applied to annotated lines
                (e.g. rendering.escape_text); None emits text verbatim
        """
        self.registry = registry
        self.formatter = formatter or HtmlFormatter()
        self.skip_comments = skip_comments
        self.escape = escape

    def _compose(self, line: str, directives: list[Directive]) -> str:
        if self.escape is None:
            return compose(line, directives)

        positions = escaped_offsets(line, self.escape)
        remapped = [replace(d, start=positions[d.start], end=positions[d.end]) for d in directives]
        return compose(self.escape(line), remapped)

    def _select(self, line: str) -> tuple[list[Word], CliBinding | None, LineOutcome | None]:
        words = tokenize(line)
        if not words:
            return words, None, LineOutcome.NO_WORDS

        if self.skip_comments and words[0].text.startswith("#"):
            return words, None, LineOutcome.COMMENT

        binding = self.registry.lookup(words[0].text)
        if binding is None:
            return words, None, LineOutcome.NO_ORACLE

        return words, binding, None

    async def annotate_line(self, line: str) -> LineResult:
        """Annotate one line; never raises for oracle failures."""
        words, binding, outcome = self._select(line)
        if binding is None:
            return LineResult(source=line, output=line, outcome=outcome)

        args = words[1:]

        try:
            result = await binding.oracle.describe([word.text for word in args])
        except OracleUnavailableError as e:
            logger.warning(f"Oracle '{binding.name}' unavailable, line left as-is: {safe_error_message(e)}")
            return LineResult(source=line, output=line, outcome=LineOutcome.UNAVAILABLE)
        except MalformedOracleResponseError as e:
            logger.warning(f"Oracle '{binding.name}' returned malformed data: {safe_error_message(e)}")
            return LineResult(source=line, output=line, outcome=LineOutcome.MALFORMED)

        if result is None:
            logger.debug(f"No command matches: {line!r}")
            return LineResult(source=line, output=line, outcome=LineOutcome.UNRESOLVED)

        try:
            directives = annotation_directives(
                result.annotations, args, result.command, self.formatter, binding.base_url
            )
        except MalformedOracleResponseError as e:
            logger.warning(f"Oracle '{binding.name}' returned malformed data: {safe_error_message(e)}")
            return LineResult(source=line, output=line, outcome=LineOutcome.MALFORMED)

        return LineResult(
            source=line,
            output=self._compose(line, directives),
            outcome=LineOutcome.ANNOTATED,
            command=result.command,
        )

    async def annotate_lines(self, lines: Iterable[str]) -> list[LineResult]:
        """Annotate lines concurrently; results keep input order."""
        return list(await asyncio.gather(*(self.annotate_line(line) for line in lines)))

    async def annotate_block(self, text: str) -> str:
        """Annotate every line of a code block (surrounding blank lines trimmed)."""
        results = await self.annotate_lines(text.strip().split("\n"))
        return "\n".join(result.output for result in results)

    async def segment_line(self, line: str) -> list[Segment] | None:
        """Split a line's arguments into classified (text, tags) segments.

        Returns:
            Segments, or None if the line cannot be described

        Raises:
            OracleUnavailableError: If the oracle cannot be queried
            MalformedOracleResponseError: If the oracle output is malformed
        """
        words, binding, _ = self._select(line)
        if binding is None:
            return None

        args = [word.text for word in words[1:]]
        result = await binding.oracle.describe(args)
        if result is None:
            return None

        spec = find_command(await binding.oracle.list_commands(), result.command)
        return describe_segments(args, result, spec)


__all__ = [
    "LineAnnotator",
    "LineOutcome",
    "LineResult",
    "annotation_directives",
    "resolve_link",
]
