"""Markdown integration - annotates command lines inside documents.

Fenced code blocks tagged with a shell language and inline code spans are
replaced by annotated HTML when at least one of their lines was annotated;
everything else is left byte-for-byte intact. All blocks of a document are
annotated concurrently and reassembled in document order.
"""

import asyncio
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from cliannotate.config import DEFAULT_LANGUAGES
from cliannotate.pipeline import LineAnnotator
from cliannotate.rendering import wrap_block

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(
    r"^(?P<indent>[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>[^\n`]*)\n"
    r"(?:(?P<body>.*?)\n)?"
    r"(?P=indent)(?P=fence)[ \t]*$",
    re.MULTILINE | re.DOTALL,
)

INLINE_CODE_PATTERN = re.compile(r"(?<!`)`(?P<code>[^`\n]+)`(?!`)")


class DocumentAnnotator:
    """Annotates shell snippets in markdown text.

    Example:
        >>> documents = DocumentAnnotator(LineAnnotator(registry))
        >>> html = await documents.annotate_markdown("Run `git status` first.")
    """

    def __init__(
        self,
        annotator: LineAnnotator,
        languages: Iterable[str] = DEFAULT_LANGUAGES,
        enable_blocks: bool = True,
        enable_inline: bool = True,
    ):
        self.annotator = annotator
        self.languages = frozenset(languages)
        self.enable_blocks = enable_blocks
        self.enable_inline = enable_inline

    async def _render_fence(self, match: re.Match[str]) -> str:
        info = match.group("info").strip()
        language = info.split()[0] if info else ""

        if not self.enable_blocks or language not in self.languages:
            return match.group(0)

        body = match.group("body") or ""
        results = await self.annotator.annotate_lines(body.strip().split("\n"))
        if not any(result.annotated for result in results):
            return match.group(0)

        escape = self.annotator.escape
        content = "\n".join(
            result.output if result.annotated or escape is None else escape(result.output)
            for result in results
        )
        return match.group("indent") + wrap_block(content, inline=False)

    async def _render_inline(self, code: str) -> str | None:
        result = await self.annotator.annotate_line(code.strip())
        if not result.annotated:
            return None
        return wrap_block(result.output, inline=True)

    async def _render_prose(self, prose: str) -> str:
        if not self.enable_inline:
            return prose

        matches = list(INLINE_CODE_PATTERN.finditer(prose))
        if not matches:
            return prose

        rendered = await asyncio.gather(*(self._render_inline(m.group("code")) for m in matches))

        # Splice right-to-left so earlier match offsets stay valid
        for match, replacement in reversed(list(zip(matches, rendered))):
            if replacement is not None:
                prose = prose[: match.start()] + replacement + prose[match.end() :]

        return prose

    async def annotate_markdown(self, text: str) -> str:
        """Annotate every eligible code block and inline code span."""
        parts = []
        cursor = 0

        for match in FENCE_PATTERN.finditer(text):
            parts.append(self._render_prose(text[cursor : match.start()]))
            parts.append(self._render_fence(match))
            cursor = match.end()

        parts.append(self._render_prose(text[cursor:]))

        return "".join(await asyncio.gather(*parts))

    async def annotate_file(self, source: Path, destination: Path) -> bool:
        """Annotate a markdown file into destination.

        Returns:
            True if the output differs from the input
        """
        text = source.read_text(encoding="utf-8")
        output = await self.annotate_markdown(text)

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(output, encoding="utf-8")

        changed = output != text
        logger.info(f"{'Annotated' if changed else 'Copied'} {source} -> {destination}")
        return changed


__all__ = ["FENCE_PATTERN", "INLINE_CODE_PATTERN", "DocumentAnnotator"]
