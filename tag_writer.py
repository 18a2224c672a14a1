# -*- coding: utf-8 -*-
########################
# tag_writer.py
########################
# Purpose:
# - Formatting primitives for .ssc tags: fixed-point numbers, escaping, and the
#   comma-separated "row=value" lists used by every timing tag.
#
# Design notes:
# - TimingTagWriter is a small builder. It remembers whether the first entry was written,
#   so the "#TAG:" prefix and the "," separators never need shared state.
# - Rows are written as beats with 3 decimals (timing_data.note_row_to_beat).
# - Label text is written verbatim. Callers keep ';' and ',' out of labels.
#
########################
# Interfaces:
# Public exceptions:
# - class InvalidEnumStateError(AssertionError)
#
# Public classes:
# - class TimingTagWriter
#   - __init__(tag: str)
#   - write(row: int, value_text: str) -> None
#   - write_float(row, value) / write_int(row, value) / write_int_pair(row, a, b)
#   - write_float_pair(row, a, b) / write_float_pair_with_unit(row, a, b, unit)
#   - finish() -> str
#
# Public functions:
# - format_float(value: float) -> str
# - sm_escape(text: str) -> str
# - format_tag(tag: str, value: str) -> str
# - format_display_bpm(display_bpm: ssc_models.DisplayBpm) -> Optional[str]
#
########################

from __future__ import annotations

from typing import List, Optional

from ssc_models import DisplayBpm, DisplayBpmKind
from timing_data import note_row_to_beat


class InvalidEnumStateError(AssertionError):
    """An enum value outside the set the writer can encode. This is a caller bug."""


_SM_ESCAPED_CHARACTERS = frozenset("\\:;")


def format_float(value: float) -> str:
    return f"{float(value):.3f}"


def sm_escape(text: str) -> str:
    """Backslash-escape the characters that would end a tag value early."""
    return "".join("\\" + char if char in _SM_ESCAPED_CHARACTERS else char for char in str(text or ""))


def format_tag(tag: str, value: str) -> str:
    return f"#{tag}:{value};"


class TimingTagWriter:
    def __init__(self, tag: str) -> None:
        self._tag = str(tag)
        self._entries: List[str] = []

    def write(self, row: int, value_text: str) -> None:
        self._entries.append(f"{note_row_to_beat(row):.3f}={value_text}")

    def write_float(self, row: int, value: float) -> None:
        self.write(row, format_float(value))

    def write_int(self, row: int, value: int) -> None:
        self.write(row, f"{int(value)}")

    def write_int_pair(self, row: int, first: int, second: int) -> None:
        self.write(row, f"{int(first)}={int(second)}")

    def write_float_pair(self, row: int, first: float, second: float) -> None:
        self.write(row, f"{format_float(first)}={format_float(second)}")

    def write_float_pair_with_unit(self, row: int, first: float, second: float, unit: int) -> None:
        unit_value = int(unit)
        if unit_value < 0 or unit_value > 0xFFFF:
            raise ValueError(f"Unit must fit in an unsigned short, got {unit_value}")
        self.write(row, f"{format_float(first)}={format_float(second)}={unit_value}")

    def finish(self) -> str:
        return format_tag(self._tag, ",".join(self._entries))


def format_display_bpm(display_bpm: DisplayBpm) -> Optional[str]:
    """DISPLAYBPM line for the given policy, or None when the actual BPM is shown."""
    kind = display_bpm.kind
    if kind is DisplayBpmKind.ACTUAL:
        return None
    if kind is DisplayBpmKind.SPECIFIED:
        low = float(display_bpm.min_bpm)
        high = float(display_bpm.max_bpm)
        if low == high:
            return format_tag("DISPLAYBPM", format_float(low))
        return format_tag("DISPLAYBPM", f"{format_float(low)}:{format_float(high)}")
    if kind is DisplayBpmKind.RANDOM:
        return format_tag("DISPLAYBPM", "*")
    raise InvalidEnumStateError(f"Invalid display BPM kind: {kind!r}")


def _run_unit_tests() -> None:
    writer = TimingTagWriter("COMBOS")
    writer.write_int(0, 4)
    writer.write_int_pair(96, 4, 7)
    assert writer.finish() == "#COMBOS:0.000=4,2.000=4=7;"

    assert TimingTagWriter("LABELS").finish() == "#LABELS:;"
    assert sm_escape("a:b;c\\") == "a\\:b\\;c\\\\"

    assert format_display_bpm(DisplayBpm.actual()) is None
    assert format_display_bpm(DisplayBpm.specified(120.0, 140.0)) == "#DISPLAYBPM:120.000:140.000;"
    assert format_display_bpm(DisplayBpm.random()) == "#DISPLAYBPM:*;"


if __name__ == "__main__":
    _run_unit_tests()
    print("tag_writer.py: ok")
