# -*- coding: utf-8 -*-
########################
# timing_data.py
########################
# Purpose:
# - Timing segment types and the per-chart timing collection consumed by ssc_store.py.
# - Row/beat conversion shared by every encoder.
#
# Design notes:
# - Each segment category is its own frozen dataclass. TimingSegment is the closed union.
# - TimingData equality is structural. ssc_store.py relies on it to decide whether a
#   chart overrides the song timing.
# - No I/O here. Keep this module pure and deterministic.
#
########################
# Interfaces:
# Public constants:
# - ROWS_PER_BEAT = 48
#
# Public enums:
# - class SegmentCategory(enum.Enum): BPM | STOP | DELAY | WARP | TIME_SIG | TICKCOUNT | COMBO
#                                     | SPEED | SCROLL | FAKE | LABEL
# - class SpeedUnit(enum.IntEnum): BEATS | SECONDS
#
# Public dataclasses:
# - BpmSegment(row, bpm), StopSegment(row, pause_seconds), DelaySegment(row, pause_seconds),
#   WarpSegment(row, length_beats), TimeSignatureSegment(row, numerator, denominator),
#   TickcountSegment(row, ticks), ComboSegment(row, combo, miss_combo),
#   SpeedSegment(row, ratio, delay, unit), ScrollSegment(row, ratio),
#   FakeSegment(row, length_beats), LabelSegment(row, label)
#
# Public classes:
# - class TimingData
#   - segments(category: SegmentCategory) -> tuple[TimingSegment, ...]
#   - add_segment(segment: TimingSegment) -> None
#   - tidied() -> TimingData
#   - __eq__(other) -> bool
#
# Public functions:
# - note_row_to_beat(row: int) -> float
# - beat_to_note_row(beat: float) -> int
# - category_of(segment: TimingSegment) -> SegmentCategory
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
from typing import Dict, Iterable, List, Optional, Tuple, Union


ROWS_PER_BEAT = 48


def note_row_to_beat(row: int) -> float:
    return float(row) / float(ROWS_PER_BEAT)


def beat_to_note_row(beat: float) -> int:
    return int(round(float(beat) * ROWS_PER_BEAT))


class SegmentCategory(enum.Enum):
    """Segment categories in the order they appear in a timing block."""

    BPM = "bpm"
    STOP = "stop"
    DELAY = "delay"
    WARP = "warp"
    TIME_SIG = "time_sig"
    TICKCOUNT = "tickcount"
    COMBO = "combo"
    SPEED = "speed"
    SCROLL = "scroll"
    FAKE = "fake"
    LABEL = "label"


class SpeedUnit(enum.IntEnum):
    BEATS = 0
    SECONDS = 1


@dataclass(frozen=True)
class BpmSegment:
    row: int
    bpm: float


@dataclass(frozen=True)
class StopSegment:
    row: int
    pause_seconds: float


@dataclass(frozen=True)
class DelaySegment:
    row: int
    pause_seconds: float


@dataclass(frozen=True)
class WarpSegment:
    row: int
    length_beats: float


@dataclass(frozen=True)
class TimeSignatureSegment:
    row: int
    numerator: int = 4
    denominator: int = 4


@dataclass(frozen=True)
class TickcountSegment:
    row: int
    ticks: int = 4


@dataclass(frozen=True)
class ComboSegment:
    row: int
    combo: int = 1
    miss_combo: int = 1


@dataclass(frozen=True)
class SpeedSegment:
    row: int
    ratio: float = 1.0
    delay: float = 0.0
    unit: SpeedUnit = SpeedUnit.BEATS


@dataclass(frozen=True)
class ScrollSegment:
    row: int
    ratio: float = 1.0


@dataclass(frozen=True)
class FakeSegment:
    row: int
    length_beats: float


@dataclass(frozen=True)
class LabelSegment:
    row: int
    label: str


TimingSegment = Union[
    BpmSegment,
    StopSegment,
    DelaySegment,
    WarpSegment,
    TimeSignatureSegment,
    TickcountSegment,
    ComboSegment,
    SpeedSegment,
    ScrollSegment,
    FakeSegment,
    LabelSegment,
]


_CATEGORY_BY_TYPE = {
    BpmSegment: SegmentCategory.BPM,
    StopSegment: SegmentCategory.STOP,
    DelaySegment: SegmentCategory.DELAY,
    WarpSegment: SegmentCategory.WARP,
    TimeSignatureSegment: SegmentCategory.TIME_SIG,
    TickcountSegment: SegmentCategory.TICKCOUNT,
    ComboSegment: SegmentCategory.COMBO,
    SpeedSegment: SegmentCategory.SPEED,
    ScrollSegment: SegmentCategory.SCROLL,
    FakeSegment: SegmentCategory.FAKE,
    LabelSegment: SegmentCategory.LABEL,
}


def category_of(segment: TimingSegment) -> SegmentCategory:
    category = _CATEGORY_BY_TYPE.get(type(segment))
    if category is None:
        raise TypeError(f"Not a timing segment: {segment!r}")
    return category


class TimingData:
    """Beat-0 offset plus one ordered segment sequence per category.

    Callers are expected to hand over data that is already sorted by row.
    tidied() returns a sorted copy for encoders that want to be sure.
    """

    def __init__(
        self,
        *,
        beat0_offset_seconds: float = 0.0,
        segments: Optional[Iterable[TimingSegment]] = None,
    ) -> None:
        self.beat0_offset_seconds = float(beat0_offset_seconds)
        self._segments: Dict[SegmentCategory, List[TimingSegment]] = {
            category: [] for category in SegmentCategory
        }
        for segment in segments or ():
            self.add_segment(segment)

    def add_segment(self, segment: TimingSegment) -> None:
        self._segments[category_of(segment)].append(segment)

    def segments(self, category: SegmentCategory) -> Tuple[TimingSegment, ...]:
        return tuple(self._segments[category])

    def all_segments(self) -> List[TimingSegment]:
        result: List[TimingSegment] = []
        for category in SegmentCategory:
            result.extend(self._segments[category])
        return result

    def tidied(self) -> TimingData:
        # sorted() is stable, so segments sharing a row keep their declaration order.
        tidy = TimingData(beat0_offset_seconds=self.beat0_offset_seconds)
        for category in SegmentCategory:
            tidy._segments[category] = sorted(self._segments[category], key=lambda segment: segment.row)
        return tidy

    def copy(self) -> TimingData:
        return TimingData(beat0_offset_seconds=self.beat0_offset_seconds, segments=self.all_segments())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TimingData):
            return NotImplemented
        if self.beat0_offset_seconds != other.beat0_offset_seconds:
            return False
        return all(self._segments[category] == other._segments[category] for category in SegmentCategory)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        counts = ", ".join(
            f"{category.value}={len(self._segments[category])}"
            for category in SegmentCategory
            if self._segments[category]
        )
        return f"TimingData(offset={self.beat0_offset_seconds!r}, {counts})"


def default_song_timing(*, bpm: float = 120.0, beat0_offset_seconds: float = 0.0) -> TimingData:
    """Minimal timing block: one tempo and the three always-present categories at row 0."""
    return TimingData(
        beat0_offset_seconds=beat0_offset_seconds,
        segments=[
            BpmSegment(row=0, bpm=float(bpm)),
            TimeSignatureSegment(row=0),
            TickcountSegment(row=0),
            ComboSegment(row=0),
        ],
    )


def _run_unit_tests() -> None:
    assert note_row_to_beat(48) == 1.0
    assert beat_to_note_row(2.5) == 120

    song_timing = default_song_timing(bpm=150.0)
    chart_timing = song_timing.copy()
    assert song_timing == chart_timing

    chart_timing.add_segment(StopSegment(row=96, pause_seconds=0.5))
    assert song_timing != chart_timing

    unordered = TimingData(segments=[BpmSegment(row=192, bpm=180.0), BpmSegment(row=0, bpm=120.0)])
    rows = [segment.row for segment in unordered.tidied().segments(SegmentCategory.BPM)]
    assert rows == [0, 192]


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_data.py: ok")
