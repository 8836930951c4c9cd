"""Label naming conventions and deterministic label colors.

Labels are created on demand, so their color has to be derived from the name alone:
the same label gets the same color in every repository and on every run, without
storing anything.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

BREAKING_CHANGE_LABEL = "breaking change"

_INT32_MASK = 0xFFFFFFFF


@dataclass(frozen=True, slots=True)
class LabelSpec:
    name: str
    color: str


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & 0x80000000 else value


def _utf16_code_units(text: str) -> Iterable[int]:
    raw = text.encode("utf-16-le")
    for i in range(0, len(raw), 2):
        yield raw[i] | (raw[i + 1] << 8)


def label_hash(label: str) -> int:
    """Return the signed 32-bit string hash used to pick a label color.

    This is the classic ``hash * 31 + c`` string hash written as
    ``c + ((hash << 5) - hash)`` over UTF-16 code units, with JavaScript number
    semantics: only the shift is truncated to 32 bits while accumulating.
    """

    acc = 0
    for code_unit in _utf16_code_units(label):
        shifted = _to_int32(_to_int32(acc) << 5)
        acc = code_unit + (shifted - acc)
    return _to_int32(acc)


def color_for_label(label: str) -> str:
    """Return a 6-digit lowercase hex color derived from the label name."""

    value = label_hash(label)
    return "".join(f"{(value >> shift) & 0xFF:02x}" for shift in (0, 8, 16))


def label_spec_for(name: str) -> LabelSpec:
    """Build the `LabelSpec` used when a label has to be created."""

    return LabelSpec(name=name, color=color_for_label(name))


def type_label_for(commit_type: str, custom_labels: Mapping[str, str]) -> str:
    """Return the label attached for a commit type (custom display label if configured)."""

    return custom_labels.get(commit_type) or commit_type


def scope_label_for(scope: str, *, prefix: str, custom_labels: Mapping[str, str]) -> str:
    """Return the label attached for a commit scope.

    A custom display label replaces the prefixed scope name entirely.
    """

    return custom_labels.get(scope) or f"{prefix}{scope}"
