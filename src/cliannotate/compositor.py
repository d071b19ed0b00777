"""Annotation compositor - splices markup directives into a line.

Directives are grouped by start offset and applied from the rightmost group
to the leftmost. Every splice only touches text at or after its own start,
so offsets of the groups still to be applied stay valid.

Within a group, prefixes open in insertion order and suffixes close in
reverse order, giving strict LIFO nesting. The group spans up to the end of
its first directive; ends of later members are ignored. Crossing spans are
not detected.
"""

from collections.abc import Iterable

from cliannotate.models import Directive


def group_directives(directives: Iterable[Directive]) -> dict[int, list[Directive]]:
    """Group directives by start offset, keeping insertion order per group."""
    groups: dict[int, list[Directive]] = {}
    for directive in directives:
        groups.setdefault(directive.start, []).append(directive)
    return groups


def compose(line: str, directives: Iterable[Directive]) -> str:
    """Splice directives into a line.

    Args:
        line: Original line
        directives: Line-relative splices

    Returns:
        Line with markup inserted

    Example:
        >>> compose("git push", [Directive(4, 8, "<b>", "</b>")])
        'git <b>push</b>'
    """
    groups = group_directives(directives)

    for start in sorted(groups, reverse=True):
        group = groups[start]
        end = group[0].end

        prefix = ""
        suffix = ""
        for directive in group:
            prefix = prefix + directive.prefix
            suffix = directive.suffix + suffix

        line = line[:start] + prefix + line[start:end] + suffix + line[end:]

    return line


__all__ = ["compose", "group_directives"]
