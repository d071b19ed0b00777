"""Word tokenizer for documented command lines.

Splits a line into whitespace-delimited words. A double- or single-quoted
run counts as one word (quotes kept in the text). No escaping, pipes or
redirections are understood.
"""

import re

from cliannotate.models import Word

WORD_PATTERN = re.compile(r""""[^"]+"|'[^']+'|\S+""")


def tokenize(line: str) -> list[Word]:
    """Split a line into words with their offsets.

    Args:
        line: Raw command line

    Returns:
        Words in order of appearance; empty for blank lines

    Example:
        >>> [(w.text, w.offset) for w in tokenize('git commit -m "a b"')]
        [('git', 0), ('commit', 4), ('-m', 11), ('"a b"', 14)]
    """
    return [Word(text=match.group(0), offset=match.start()) for match in WORD_PATTERN.finditer(line)]


__all__ = ["WORD_PATTERN", "tokenize"]
