from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

import pytest

from durable_store import LocalFile, LocalFileStorage
from ssc_models import (
    BackgroundChange,
    Difficulty,
    DisplayBpm,
    PlayerNumber,
    RadarCategory,
    RadarValues,
    Song,
    Steps,
    StepsType,
)
from timing_data import BpmSegment, StopSegment, default_song_timing


NOTE_GRID = "\n0000\n1000\n0100\n0010\n,\n0001\n0000\n0000\n0000\n"


class RecordingStorage(LocalFileStorage):
    """Local storage that logs every operation in order."""

    def __init__(self) -> None:
        self.operations: List[Tuple[str, Path]] = []

    def open_for_write(self, path: Path, *, slow_flush: bool) -> LocalFile:
        self.operations.append(("open", Path(path)))
        return super().open_for_write(path, slow_flush=slow_flush)

    def exists(self, path: Path) -> bool:
        self.operations.append(("exists", Path(path)))
        return super().exists(path)

    def remove(self, path: Path) -> None:
        self.operations.append(("remove", Path(path)))
        super().remove(path)


def build_steps(song: Song, **overrides) -> Steps:
    values = dict(
        steps_type=StepsType.DANCE_SINGLE,
        difficulty=Difficulty.HARD,
        meter=9,
        description="Blazing",
        chart_name="Main",
        credit="someone",
        radar_values={
            PlayerNumber.P1: RadarValues({RadarCategory.STREAM: 0.5, RadarCategory.VOLTAGE: 0.25}),
            PlayerNumber.P2: RadarValues({RadarCategory.STREAM: 0.5}),
        },
        timing=song.timing.copy(),
        attacks=song.attacks,
        note_data=NOTE_GRID,
    )
    values.update(overrides)
    return Steps(**values)


def build_song() -> Song:
    timing = default_song_timing(bpm=150.0, beat0_offset_seconds=-0.012)
    timing.add_segment(BpmSegment(row=384, bpm=175.5))
    timing.add_segment(StopSegment(row=192, pause_seconds=0.25))
    song = Song(
        main_title="Test; Song",
        sub_title="Remix",
        artist="Artist: Name",
        genre="Trance",
        banner_file="bn.png",
        music_file="song.ogg",
        music_sample_start_seconds=30.0,
        music_sample_length_seconds=12.0,
        timing=timing,
        background_change_layers=[[BackgroundChange(row=0, file1="bg.avi")]],
        first_second=0.5,
        last_second=95.25,
        song_file_name="Songs/Group/Test/test.ssc",
        has_music=True,
        has_banner=False,
        music_length_seconds=101.0,
        song_dir="Songs/Group/Test/",
    )
    song.steps.append(build_steps(song))
    return song


@pytest.fixture
def song() -> Song:
    return build_song()


@pytest.fixture
def recording_storage() -> RecordingStorage:
    return RecordingStorage()
