"""
Minimal builder for the client's YAML configuration text.

The client parses the text directly, so key order, two-space nesting and
scalar formatting are fixed here instead of being spread over string
concatenation in the renderer.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence, Tuple

INDENT = "  "


@dataclass
class Entry:
    key: str
    value: Optional[str] = None
    children: List["Entry"] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.value is None and all(c.is_empty() for c in self.children)


def block(key: str, *children: Optional[Entry]) -> Entry:
    """Nested block; None children are dropped so optional lines can be passed inline."""
    return Entry(key, children=[c for c in children if c is not None])


def scalar(key: str, value: str) -> Entry:
    return Entry(key, value=value)


def quoted(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def boolean(value: bool) -> str:
    return "true" if value else "false"


def integer(value: int) -> str:
    return str(int(value))


def seconds(value: int) -> str:
    return f"{int(value)}s"


def mbps(value: int) -> str:
    return f"{int(value)} mbps"


def positive(value: Any) -> bool:
    return value > 0


# (key, attribute, predicate, formatter)
FieldDescriptor = Tuple[str, str, Callable[[Any], bool], Callable[[Any], str]]


def optional_fields(source: Any, descriptors: Sequence[FieldDescriptor]) -> Iterator[Entry]:
    """
    Yields one scalar entry per descriptor whose attribute value passes its predicate.
    """
    for key, attribute, predicate, formatter in descriptors:
        value = getattr(source, attribute)
        if predicate(value):
            yield scalar(key, formatter(value))


def _render_entry(entry: Entry, depth: int, lines: List[str]):
    prefix = INDENT * depth
    if entry.value is not None:
        lines.append(f"{prefix}{entry.key}: {entry.value}")
        return
    lines.append(f"{prefix}{entry.key}:")
    for child in entry.children:
        if not child.is_empty():
            _render_entry(child, depth + 1, lines)


def render_document(entries: Iterable[Optional[Entry]]) -> str:
    """
    Serializes top level entries, separating them with one blank line.
    Entries without a value or non-empty children are left out.
    """
    sections = []
    for entry in entries:
        if entry is None or entry.is_empty():
            continue
        lines: List[str] = []
        _render_entry(entry, 0, lines)
        sections.append("\n".join(lines) + "\n")
    return "\n".join(sections)
