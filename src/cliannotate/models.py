"""Data models for command specifications and oracle answers.

This module defines the structures exchanged with a description oracle:
static command specifications (what a CLI accepts) and describe results
(what one concrete argument vector means), plus the line-level Word and
Directive types used by the tokenizer and compositor.

Philosophy:
- Frozen dataclasses, recomputed per line and never mutated
- Closed unions: every consumer handles every variant explicitly
- Wire parsing fails closed with MalformedOracleResponseError

Wire format:
    Oracle output uses camelCase keys (``primaryPath``, ``argIndex``...).
    Every ``from_dict`` classmethod validates the shape it reads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from cliannotate.errors import MalformedOracleResponseError


def _field(data: Any, key: str, expected: type | tuple[type, ...], *, nullable: bool = False) -> Any:
    """Read one key from a wire object, checking its type.

    Raises:
        MalformedOracleResponseError: If data is not an object, the key is
            missing, or the value has the wrong type
    """
    if not isinstance(data, dict):
        raise MalformedOracleResponseError(f"Expected object, got {type(data).__name__}")

    if key not in data:
        raise MalformedOracleResponseError(f"Missing key '{key}'")

    value = data[key]
    if value is None and nullable:
        return None

    # bool is a subclass of int; never accept it where an int is expected
    if isinstance(value, bool) and bool not in (expected if isinstance(expected, tuple) else (expected,)):
        raise MalformedOracleResponseError(f"Key '{key}' has unexpected type bool")

    if not isinstance(value, expected):
        raise MalformedOracleResponseError(
            f"Key '{key}' has unexpected type {type(value).__name__}"
        )

    return value


def _int_field(data: Any, key: str, *, nullable: bool = False) -> int | None:
    value = _field(data, key, int, nullable=nullable)
    if value is not None and value < 0:
        raise MalformedOracleResponseError(f"Key '{key}' must be non-negative, got {value}")
    return value


def _str_list(data: Any, key: str) -> tuple[str, ...]:
    values = _field(data, key, list)
    if not all(isinstance(value, str) for value in values):
        raise MalformedOracleResponseError(f"Key '{key}' must be a list of strings")
    return tuple(values)


def _enum_field(data: Any, key: str, enum_type: type[Enum]) -> Any:
    value = _field(data, key, str)
    try:
        return enum_type(value)
    except ValueError as e:
        raise MalformedOracleResponseError(f"Unknown {key} '{value}'") from e


class TokenType(Enum):
    """Low-level classification of an argument slice."""

    KEYWORD = "keyword"
    OPTION = "option"
    VALUE = "value"
    POSITIONAL = "positional"
    UNKNOWN = "unknown"


class AnnotationType(Enum):
    """Human-facing classification of an annotated span."""

    KEYWORD = "keyword"
    OPTION = "option"
    POSITIONAL = "positional"


@dataclass(frozen=True)
class Word:
    """A whitespace-delimited word and its offset in the original line.

    Attributes:
        text: Word text (quote characters retained)
        offset: Index of the first character in the line
    """

    text: str
    offset: int

    @property
    def end(self) -> int:
        return self.offset + len(self.text)


@dataclass(frozen=True)
class Directive:
    """Line-relative markup splice instruction."""

    start: int
    end: int
    prefix: str
    suffix: str


@dataclass(frozen=True)
class Example:
    """A documented usage example of a command."""

    command: str
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Example":
        return cls(
            command=_field(data, "command", str),
            description=_field(data, "description", str, nullable=True),
        )


@dataclass(frozen=True)
class KeywordPositional:
    """Positional component matching one fixed literal token."""

    expected: str

    @classmethod
    def from_dict(cls, data: Any) -> "KeywordPositional":
        return cls(expected=_field(data, "expected", str))


@dataclass(frozen=True)
class DynamicPositional:
    """Positional component matching a run of free-form tokens.

    Attributes:
        name: Placeholder name shown in usage (e.g. "host")
        description: Help text, if any
        min_len: Minimum number of tokens consumed
        extra_len: Additional optional tokens; None means unbounded
        is_prefix: Whether the run appears before the command keywords
        is_proxy: Whether the run swallows every remaining token
    """

    name: str
    description: str | None = None
    min_len: int = 1
    extra_len: int | None = 0
    is_prefix: bool = False
    is_proxy: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "DynamicPositional":
        return cls(
            name=_field(data, "name", str),
            description=_field(data, "description", str, nullable=True),
            min_len=_int_field(data, "minLen"),
            extra_len=_int_field(data, "extraLen", nullable=True),
            is_prefix=_field(data, "isPrefix", bool),
            is_proxy=_field(data, "isProxy", bool),
        )


@dataclass(frozen=True)
class OptionComponent:
    """Option component (``--name``, ``-n``, ``--name=value``).

    Attributes:
        primary_name: Canonical option name (e.g. "--port")
        aliases: Alternative names (e.g. {"-p"})
        description: Help text, if any
        min_len: Minimum number of values
        extra_len: Additional optional values; None means unbounded
        allow_binding: Whether ``--opt=value`` is accepted
        allow_boolean: Whether the option may appear without a value
        is_hidden: Whether the option is omitted from documentation
        is_required: Whether the option must be provided
    """

    primary_name: str
    aliases: frozenset[str] = frozenset()
    description: str | None = None
    min_len: int = 0
    extra_len: int | None = 0
    allow_binding: bool = False
    allow_boolean: bool = True
    is_hidden: bool = False
    is_required: bool = False

    @property
    def names(self) -> tuple[str, ...]:
        """Primary name followed by aliases, sorted for stable output."""
        return (self.primary_name, *sorted(self.aliases))

    @classmethod
    def from_dict(cls, data: Any) -> "OptionComponent":
        return cls(
            primary_name=_field(data, "primaryName", str),
            aliases=frozenset(_str_list(data, "aliases")),
            description=_field(data, "description", str, nullable=True),
            min_len=_int_field(data, "minLen"),
            extra_len=_int_field(data, "extraLen", nullable=True),
            allow_binding=_field(data, "allowBinding", bool),
            allow_boolean=_field(data, "allowBoolean", bool),
            is_hidden=_field(data, "isHidden", bool),
            is_required=_field(data, "isRequired", bool),
        )


Component = Union[KeywordPositional, DynamicPositional, OptionComponent]


def component_from_dict(data: Any) -> Component:
    """Parse one component from its tagged wire representation.

    Raises:
        MalformedOracleResponseError: On unknown tags or invalid fields
    """
    kind = _field(data, "type", str)

    if kind == "option":
        return OptionComponent.from_dict(data)

    if kind == "positional":
        positional_type = _field(data, "positionalType", str)
        if positional_type == "keyword":
            return KeywordPositional.from_dict(data)
        if positional_type == "dynamic":
            return DynamicPositional.from_dict(data)
        raise MalformedOracleResponseError(f"Unknown positionalType '{positional_type}'")

    raise MalformedOracleResponseError(f"Unknown component type '{kind}'")


def component_description(component: Component) -> str | None:
    """Return the help text of a component (keywords have none)."""
    if isinstance(component, KeywordPositional):
        return None
    if isinstance(component, (DynamicPositional, OptionComponent)):
        return component.description
    raise TypeError(f"Unknown component: {component!r}")


@dataclass(frozen=True)
class CommandSpec:
    """Static description of one CLI command.

    Attributes:
        primary_path: Keywords selecting the command (e.g. ("remote", "add"))
        aliases: Alternative keyword paths
        category: Documentation category, if any
        description: One-line summary, if any
        details: Long-form documentation, if any
        examples: Usage examples
        components: Grammar elements, indexed by component id
        required_options: Indices of required option components
    """

    primary_path: tuple[str, ...]
    aliases: tuple[tuple[str, ...], ...] = ()
    category: str | None = None
    description: str | None = None
    details: str | None = None
    examples: tuple[Example, ...] = ()
    components: tuple[Component, ...] = ()
    required_options: frozenset[int] = frozenset()

    def __post_init__(self) -> None:
        for index in self.required_options:
            if index >= len(self.components) or not isinstance(
                self.components[index], OptionComponent
            ):
                raise MalformedOracleResponseError(
                    f"requiredOptions index {index} does not reference an option component"
                )

    @property
    def paths(self) -> tuple[tuple[str, ...], ...]:
        """Primary path followed by every alias path."""
        return (self.primary_path, *self.aliases)

    @property
    def options(self) -> list[OptionComponent]:
        return [c for c in self.components if isinstance(c, OptionComponent)]

    def matches(self, path: tuple[str, ...] | list[str]) -> bool:
        return tuple(path) in self.paths

    @classmethod
    def from_dict(cls, data: Any) -> "CommandSpec":
        aliases = _field(data, "aliases", list)
        if not all(isinstance(alias, list) and all(isinstance(s, str) for s in alias) for alias in aliases):
            raise MalformedOracleResponseError("Key 'aliases' must be a list of string lists")

        required = _field(data, "requiredOptions", list)
        if not all(isinstance(i, int) and not isinstance(i, bool) and i >= 0 for i in required):
            raise MalformedOracleResponseError("Key 'requiredOptions' must be a list of indices")

        # Description may live at top level or under a documentation object
        documentation = data.get("documentation") if isinstance(data, dict) else None
        source = documentation if isinstance(documentation, dict) else data

        return cls(
            primary_path=_str_list(data, "primaryPath"),
            aliases=tuple(tuple(alias) for alias in aliases),
            category=_field(data, "category", str, nullable=True),
            description=source.get("description") if isinstance(source.get("description"), str) else None,
            details=source.get("details") if isinstance(source.get("details"), str) else None,
            examples=tuple(Example.from_dict(e) for e in _field(data, "examples", list)),
            components=tuple(component_from_dict(c) for c in _field(data, "components", list)),
            required_options=frozenset(required),
        )


@dataclass(frozen=True)
class Slice:
    """Character range inside one argument."""

    start: int
    end: int

    @classmethod
    def from_dict(cls, data: Any) -> "Slice":
        start = _int_field(data, "start")
        end = _int_field(data, "end")
        if end < start:
            raise MalformedOracleResponseError(f"Slice end {end} precedes start {start}")
        return cls(start=start, end=end)


@dataclass(frozen=True)
class Token:
    """Classification of a slice of one argument."""

    type: TokenType
    arg_index: int
    slice: Slice
    component_id: int | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Token":
        return cls(
            type=_enum_field(data, "type", TokenType),
            arg_index=_int_field(data, "argIndex"),
            slice=Slice.from_dict(_field(data, "slice", dict)),
            component_id=_int_field(data, "componentId", nullable=True),
        )


@dataclass(frozen=True)
class ArgPosition:
    """Argument-relative coordinate: which argument, and where inside it."""

    arg_index: int
    offset: int

    @classmethod
    def from_dict(cls, data: Any) -> "ArgPosition":
        return cls(arg_index=_int_field(data, "argIndex"), offset=_int_field(data, "offset"))


@dataclass(frozen=True)
class Annotation:
    """Semantic span over one or more arguments."""

    type: AnnotationType
    start: ArgPosition
    end: ArgPosition
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Any) -> "Annotation":
        return cls(
            type=_enum_field(data, "type", AnnotationType),
            start=ArgPosition.from_dict(_field(data, "start", dict)),
            end=ArgPosition.from_dict(_field(data, "end", dict)),
            description=_field(data, "description", str, nullable=True),
        )


@dataclass(frozen=True)
class DescribeResult:
    """Oracle answer for one concrete argument vector.

    Attributes:
        command: Resolved command path (keywords only)
        tokens: Per-slice classification
        annotations: Human-facing spans
    """

    command: tuple[str, ...]
    tokens: tuple[Token, ...] = ()
    annotations: tuple[Annotation, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "DescribeResult | None":
        """Parse a describe answer; JSON ``null`` means unresolved."""
        if data is None:
            return None

        return cls(
            command=_str_list(data, "command"),
            tokens=tuple(Token.from_dict(t) for t in _field(data, "tokens", list)),
            annotations=tuple(Annotation.from_dict(a) for a in _field(data, "annotations", list)),
        )


def command_specs_from_list(data: Any) -> tuple[CommandSpec, ...]:
    """Parse the oracle's command enumeration.

    Raises:
        MalformedOracleResponseError: If data is not a list of valid specs
    """
    if not isinstance(data, list):
        raise MalformedOracleResponseError(f"Expected list of commands, got {type(data).__name__}")
    return tuple(CommandSpec.from_dict(item) for item in data)


__all__ = [
    "Annotation",
    "AnnotationType",
    "ArgPosition",
    "CommandSpec",
    "Component",
    "DescribeResult",
    "Directive",
    "DynamicPositional",
    "Example",
    "KeywordPositional",
    "OptionComponent",
    "Slice",
    "Token",
    "TokenType",
    "Word",
    "command_specs_from_list",
    "component_description",
    "component_from_dict",
]
