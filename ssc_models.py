# -*- coding: utf-8 -*-
########################
# ssc_models.py
########################
# Purpose:
# - Song and chart (Steps) data models serialized by ssc_store.py.
# - Enumerations that have a fixed on-disk spelling or a fixed serialization order.
#
# Design notes:
# - Plain dataclasses. Prefer extending with new optional fields rather than breaking changes.
# - Steps is mutable only in filename and saved_to_disk, which the edit writer updates
#   after a successful save. Everything else is treated as a read-only snapshot.
# - Steps.difficulty may be given as a case-insensitive name; it is normalized to Difficulty.
# - Enum declaration order is an interface contract: RADARVALUES is written in
#   PlayerNumber x RadarCategory order.
#
########################
# Interfaces:
# Public enums:
# - class Difficulty(enum.Enum): BEGINNER | EASY | MEDIUM | HARD | CHALLENGE | EDIT
# - class StepsType(enum.Enum): DANCE_SINGLE | DANCE_DOUBLE | DANCE_COUPLE | DANCE_SOLO | ...
# - class PlayerNumber(enum.Enum): P1 | P2
# - class RadarCategory(enum.Enum): STREAM | VOLTAGE | ... | FAKES
# - class SelectionDisplay(enum.Enum): ALWAYS | NEVER | NONSTOP
# - class DisplayBpmKind(enum.Enum): ACTUAL | SPECIFIED | RANDOM
# - class InstrumentTrack(enum.Enum): GUITAR | RHYTHM | BASS
#
# Public dataclasses:
# - DisplayBpm(kind, min_bpm, max_bpm)
# - RadarValues(values: dict[RadarCategory, float])
# - BackgroundChange(row, file1, rate, crossfade, stretch_rewind, stretch_no_loop, effect, file2,
#                    transition, color1, color2)
# - Steps(...), Song(...)
#
# Public functions:
# - normalize_difficulty(difficulty: str | Difficulty) -> Difficulty
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from timing_data import TimingData, note_row_to_beat


class Difficulty(enum.Enum):
    BEGINNER = "Beginner"
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    CHALLENGE = "Challenge"
    EDIT = "Edit"


class StepsType(enum.Enum):
    DANCE_SINGLE = "dance-single"
    DANCE_DOUBLE = "dance-double"
    DANCE_COUPLE = "dance-couple"
    DANCE_SOLO = "dance-solo"
    DANCE_ROUTINE = "dance-routine"
    PUMP_SINGLE = "pump-single"
    PUMP_HALFDOUBLE = "pump-halfdouble"
    PUMP_DOUBLE = "pump-double"
    KB7_SINGLE = "kb7-single"
    LIGHTS_CABINET = "lights-cabinet"


class PlayerNumber(enum.Enum):
    P1 = 0
    P2 = 1


class RadarCategory(enum.Enum):
    STREAM = "Stream"
    VOLTAGE = "Voltage"
    AIR = "Air"
    FREEZE = "Freeze"
    CHAOS = "Chaos"
    TAPS_AND_HOLDS = "TapsAndHolds"
    JUMPS = "Jumps"
    HOLDS = "Holds"
    MINES = "Mines"
    HANDS = "Hands"
    ROLLS = "Rolls"
    LIFTS = "Lifts"
    FAKES = "Fakes"


class SelectionDisplay(enum.Enum):
    ALWAYS = "always"
    NEVER = "never"
    # Valid in the model, but .ssc has no spelling for it.
    NONSTOP = "nonstop"


class DisplayBpmKind(enum.Enum):
    ACTUAL = "actual"
    SPECIFIED = "specified"
    RANDOM = "random"


class InstrumentTrack(enum.Enum):
    GUITAR = "Guitar"
    RHYTHM = "Rhythm"
    BASS = "Bass"


_DIFFICULTY_BY_NAME = {difficulty.value.lower(): difficulty for difficulty in Difficulty}


def normalize_difficulty(difficulty: Union[str, Difficulty]) -> Difficulty:
    if isinstance(difficulty, Difficulty):
        return difficulty
    difficulty_text = str(difficulty or "").strip().lower()
    if difficulty_text not in _DIFFICULTY_BY_NAME:
        raise ValueError(
            f"Unsupported difficulty: {difficulty!r}. Allowed: {sorted(_DIFFICULTY_BY_NAME)}"
        )
    return _DIFFICULTY_BY_NAME[difficulty_text]


@dataclass(frozen=True)
class DisplayBpm:
    kind: DisplayBpmKind = DisplayBpmKind.ACTUAL
    min_bpm: float = 0.0
    max_bpm: float = 0.0

    @classmethod
    def actual(cls) -> DisplayBpm:
        return cls(kind=DisplayBpmKind.ACTUAL)

    @classmethod
    def specified(cls, min_bpm: float, max_bpm: Optional[float] = None) -> DisplayBpm:
        high = float(min_bpm) if max_bpm is None else float(max_bpm)
        return cls(kind=DisplayBpmKind.SPECIFIED, min_bpm=float(min_bpm), max_bpm=high)

    @classmethod
    def random(cls) -> DisplayBpm:
        return cls(kind=DisplayBpmKind.RANDOM)


@dataclass(frozen=True)
class RadarValues:
    values: Dict[RadarCategory, float] = field(default_factory=dict)

    def __getitem__(self, category: RadarCategory) -> float:
        return float(self.values.get(category, 0.0))


@dataclass(frozen=True)
class BackgroundChange:
    """One row-anchored background or foreground change."""

    row: int
    file1: str
    rate: float = 1.0
    crossfade: bool = False
    stretch_rewind: bool = False
    stretch_no_loop: bool = False
    effect: str = ""
    file2: str = ""
    transition: str = ""
    color1: str = ""
    color2: str = ""

    def to_string(self) -> str:
        fields = [
            f"{note_row_to_beat(self.row):.3f}",
            self.file1,
            f"{float(self.rate):.3f}",
            str(int(bool(self.crossfade))),
            str(int(bool(self.stretch_rewind))),
            str(int(bool(self.stretch_no_loop))),
        ]
        extended = [self.effect, self.file2, self.transition, self.color1, self.color2]
        if any(extended):
            fields.extend(extended)
        return "=".join(fields)


NUM_BACKGROUND_LAYERS = 2


def _empty_radar_values() -> Dict[PlayerNumber, RadarValues]:
    return {player: RadarValues() for player in PlayerNumber}


@dataclass
class Steps:
    steps_type: StepsType
    difficulty: Difficulty
    meter: int = 1
    description: str = ""
    chart_name: str = ""
    chart_style: str = ""
    credit: str = ""
    radar_values: Dict[PlayerNumber, RadarValues] = field(default_factory=_empty_radar_values)
    timing: TimingData = field(default_factory=TimingData)
    attacks: str = ""
    display_bpm: DisplayBpm = field(default_factory=DisplayBpm.actual)
    note_data: str = ""
    filename: str = ""
    saved_to_disk: bool = False

    def __post_init__(self) -> None:
        self.difficulty = normalize_difficulty(self.difficulty)

    def radar_values_for(self, player: PlayerNumber) -> RadarValues:
        return self.radar_values.get(player, RadarValues())


@dataclass
class Song:
    main_title: str = ""
    sub_title: str = ""
    artist: str = ""
    main_title_translit: str = ""
    sub_title_translit: str = ""
    artist_translit: str = ""
    genre: str = ""
    origin: str = ""
    credit: str = ""
    banner_file: str = ""
    background_file: str = ""
    lyrics_file: str = ""
    cd_title_file: str = ""
    music_file: str = ""
    instrument_tracks: Sequence[Tuple[InstrumentTrack, str]] = ()
    music_sample_start_seconds: float = 0.0
    music_sample_length_seconds: float = 0.0
    selection_display: SelectionDisplay = SelectionDisplay.ALWAYS
    display_bpm: DisplayBpm = field(default_factory=DisplayBpm.actual)
    timing: TimingData = field(default_factory=TimingData)
    specified_last_second: float = -1.0
    background_change_layers: Sequence[Sequence[BackgroundChange]] = ()
    foreground_changes: Sequence[BackgroundChange] = ()
    keysound_files: Sequence[str] = ()
    attacks: str = ""
    first_second: float = 0.0
    last_second: float = 0.0
    song_file_name: str = ""
    has_music: bool = False
    has_banner: bool = False
    music_length_seconds: float = 0.0
    song_dir: str = ""
    steps: List[Steps] = field(default_factory=list)

    def background_changes(self, layer: int) -> Sequence[BackgroundChange]:
        if layer < 0 or layer >= NUM_BACKGROUND_LAYERS:
            raise IndexError(f"Background layer out of range: {layer}")
        if layer >= len(self.background_change_layers):
            return ()
        return self.background_change_layers[layer]

    def translit_main_title(self) -> str:
        return self.main_title_translit or self.main_title

    def translit_sub_title(self) -> str:
        return self.sub_title_translit or self.sub_title

    def translit_full_title(self) -> str:
        sub_title = self.translit_sub_title()
        if not sub_title:
            return self.translit_main_title()
        return f"{self.translit_main_title()} {sub_title}"

    def instrument_track_strings(self) -> List[str]:
        return [f"{track.value}={file_name}" for track, file_name in self.instrument_tracks]
