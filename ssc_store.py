# -*- coding: utf-8 -*-
########################
# ssc_store.py
########################
# Purpose:
# - Serialize ssc_models.Song / Steps into StepMania .ssc text.
# - Write song files (full or cache) and per-chart edit files to disk.
#
# Design notes:
# - Pure string building up to render_song_document(). All disk access goes through
#   durable_store.Storage.
# - Tag order is fixed by the format. Do not reorder lines.
# - A chart writes its own OFFSET and timing block only when its TimingData differs from
#   the song's. ATTACKS follows the same rule.
# - Lines are joined with \r\n, and every chart block has trailing whitespace and
#   surrounding blank lines trimmed.
# - SELECTABLE and DISPLAYBPM only accept their defined states. Anything else raises
#   tag_writer.InvalidEnumStateError, which the save functions do not catch.
#
########################
# Interfaces:
# Public dataclasses:
# - SaveResult(ok: bool, path: pathlib.Path, error_text: Optional[str], removed_path: Optional[pathlib.Path])
#
# Public functions:
# - timing_tag_lines(timing: TimingData, *, is_song: bool = False) -> list[str]
# - global_tag_lines(song: Song) -> list[str]
# - cache_tag_lines(song: Song) -> list[str]
# - note_data_text(song: Song, steps: Steps, *, saving_cache: bool) -> str
# - render_song_document(song: Song, steps_to_save: Sequence[Steps], *, saving_cache: bool = False) -> str
# - edit_file_contents(song: Song, steps: Steps) -> str
# - edit_file_name(song: Song, steps: Steps) -> str
# - write_song(path, song, steps_to_save=None, *, saving_cache=False, storage=None, writer_config=None) -> SaveResult
# - write_edit_file_to_machine(song, steps, *, edits_dir=None, storage=None, writer_config=None) -> SaveResult
#
# Inputs:
# - Song and Steps snapshots from ssc_models.py.
#
# Outputs:
# - .ssc text, .ssc files on disk, .edit files in the machine profile.
#
########################

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from config import WriterConfig, get_config
from durable_store import (
    LINE_TERMINATOR,
    LocalFileStorage,
    SscWriteError,
    Storage,
    durable_replace,
    write_blob,
)
from ssc_models import (
    NUM_BACKGROUND_LAYERS,
    BackgroundChange,
    PlayerNumber,
    RadarCategory,
    SelectionDisplay,
    Song,
    Steps,
    StepsType,
)
from tag_writer import (
    InvalidEnumStateError,
    TimingTagWriter,
    format_display_bpm,
    format_float,
    format_tag,
    sm_escape,
)
from timing_data import (
    BpmSegment,
    ComboSegment,
    DelaySegment,
    FakeSegment,
    LabelSegment,
    ScrollSegment,
    SegmentCategory,
    SpeedSegment,
    StopSegment,
    TickcountSegment,
    TimeSignatureSegment,
    TimingData,
    TimingSegment,
    WarpSegment,
)
import paths


logger = logging.getLogger(__name__)

STEPFILE_VERSION_NUMBER = 0.83

EDIT_FILE_EXTENSION = ".edit"

# Written as the last layer-0 background change. A reader drops it and skips adding
# the implicit song background at the end.
NO_SONG_BG_SENTINEL = "99999=-nosongbg-=1.000=0=0=0"

_TIMING_TAGS = (
    (SegmentCategory.BPM, "BPMS"),
    (SegmentCategory.STOP, "STOPS"),
    (SegmentCategory.DELAY, "DELAYS"),
    (SegmentCategory.WARP, "WARPS"),
    (SegmentCategory.TIME_SIG, "TIMESIGNATURES"),
    (SegmentCategory.TICKCOUNT, "TICKCOUNTS"),
    (SegmentCategory.COMBO, "COMBOS"),
    (SegmentCategory.SPEED, "SPEEDS"),
    (SegmentCategory.SCROLL, "SCROLLS"),
    (SegmentCategory.FAKE, "FAKES"),
    (SegmentCategory.LABEL, "LABELS"),
)

_SELECTABLE_TEXT = {
    SelectionDisplay.ALWAYS: "YES",
    SelectionDisplay.NEVER: "NO",
}


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    path: Path
    error_text: Optional[str] = None
    removed_path: Optional[Path] = None


def _write_segment(writer: TimingTagWriter, segment: TimingSegment) -> None:
    if isinstance(segment, BpmSegment):
        writer.write_float(segment.row, segment.bpm)
    elif isinstance(segment, (StopSegment, DelaySegment)):
        writer.write_float(segment.row, segment.pause_seconds)
    elif isinstance(segment, (WarpSegment, FakeSegment)):
        writer.write_float(segment.row, segment.length_beats)
    elif isinstance(segment, TimeSignatureSegment):
        writer.write_int_pair(segment.row, segment.numerator, segment.denominator)
    elif isinstance(segment, TickcountSegment):
        writer.write_int(segment.row, segment.ticks)
    elif isinstance(segment, ComboSegment):
        if int(segment.combo) == int(segment.miss_combo):
            writer.write_int(segment.row, segment.combo)
        else:
            writer.write_int_pair(segment.row, segment.combo, segment.miss_combo)
    elif isinstance(segment, SpeedSegment):
        writer.write_float_pair_with_unit(segment.row, segment.ratio, segment.delay, int(segment.unit))
    elif isinstance(segment, ScrollSegment):
        writer.write_float(segment.row, segment.ratio)
    elif isinstance(segment, LabelSegment):
        writer.write(segment.row, segment.label)
    else:
        raise TypeError(f"Unsupported timing segment: {segment!r}")


def timing_tag_lines(timing: TimingData, *, is_song: bool = False) -> List[str]:
    """One tag per segment category. Song timing never carries FAKES."""
    tidy_timing = timing.tidied()
    lines: List[str] = []
    for category, tag in _TIMING_TAGS:
        if is_song and category is SegmentCategory.FAKE:
            continue
        writer = TimingTagWriter(tag)
        for segment in tidy_timing.segments(category):
            _write_segment(writer, segment)
        lines.append(writer.finish())
    return lines


def _change_list_lines(tag: str, changes: Sequence[BackgroundChange], *, add_sentinel: bool) -> List[str]:
    entries = [change.to_string() + "," for change in changes]
    if add_sentinel and entries:
        entries.append(NO_SONG_BG_SENTINEL)
    if not entries:
        return [f"#{tag}:;"]
    return [f"#{tag}:{entries[0]}"] + entries[1:] + [";"]


def _selectable_text(selection_display: SelectionDisplay) -> str:
    selectable_text = _SELECTABLE_TEXT.get(selection_display)
    if selectable_text is None:
        raise InvalidEnumStateError(f"An invalid selectable value was found for this song: {selection_display!r}")
    return selectable_text


def global_tag_lines(song: Song) -> List[str]:
    lines: List[str] = []
    lines.append(format_tag("VERSION", f"{STEPFILE_VERSION_NUMBER:.2f}"))
    lines.append(format_tag("TITLE", sm_escape(song.main_title)))
    lines.append(format_tag("SUBTITLE", sm_escape(song.sub_title)))
    lines.append(format_tag("ARTIST", sm_escape(song.artist)))
    lines.append(format_tag("TITLETRANSLIT", sm_escape(song.main_title_translit)))
    lines.append(format_tag("SUBTITLETRANSLIT", sm_escape(song.sub_title_translit)))
    lines.append(format_tag("ARTISTTRANSLIT", sm_escape(song.artist_translit)))
    lines.append(format_tag("GENRE", sm_escape(song.genre)))
    lines.append(format_tag("ORIGIN", sm_escape(song.origin)))
    lines.append(format_tag("CREDIT", sm_escape(song.credit)))
    lines.append(format_tag("BANNER", sm_escape(song.banner_file)))
    lines.append(format_tag("BACKGROUND", sm_escape(song.background_file)))
    lines.append(format_tag("LYRICSPATH", sm_escape(song.lyrics_file)))
    lines.append(format_tag("CDTITLE", sm_escape(song.cd_title_file)))
    lines.append(format_tag("MUSIC", sm_escape(song.music_file)))

    instrument_tracks = song.instrument_track_strings()
    if instrument_tracks:
        lines.append(format_tag("INSTRUMENTTRACK", ",".join(instrument_tracks)))

    lines.append(format_tag("OFFSET", format_float(song.timing.beat0_offset_seconds)))
    lines.append(format_tag("SAMPLESTART", format_float(song.music_sample_start_seconds)))
    lines.append(format_tag("SAMPLELENGTH", format_float(song.music_sample_length_seconds)))
    lines.append(format_tag("SELECTABLE", _selectable_text(song.selection_display)))

    display_bpm_line = format_display_bpm(song.display_bpm)
    if display_bpm_line is not None:
        lines.append(display_bpm_line)

    lines.extend(timing_tag_lines(song.timing, is_song=True))

    if float(song.specified_last_second) > 0.0:
        lines.append(format_tag("LASTSECONDHINT", format_float(song.specified_last_second)))

    for layer in range(NUM_BACKGROUND_LAYERS):
        changes = song.background_changes(layer)
        if layer == 0:
            tag = "BGCHANGES"
        elif not changes:
            continue
        else:
            tag = f"BGCHANGES{layer + 1}"
        lines.extend(_change_list_lines(tag, changes, add_sentinel=(layer == 0)))

    if song.foreground_changes:
        lines.extend(_change_list_lines("FGCHANGES", song.foreground_changes, add_sentinel=False))

    lines.append(format_tag("KEYSOUNDS", ",".join(song.keysound_files)))
    lines.append(format_tag("ATTACKS", song.attacks))
    return lines


def cache_tag_lines(song: Song) -> List[str]:
    return [
        "// cache tags:",
        format_tag("FIRSTSECOND", format_float(song.first_second)),
        format_tag("LASTSECOND", format_float(song.last_second)),
        format_tag("SONGFILENAME", song.song_file_name),
        format_tag("HASMUSIC", str(int(bool(song.has_music)))),
        format_tag("HASBANNER", str(int(bool(song.has_banner)))),
        format_tag("MUSICLENGTH", format_float(song.music_length_seconds)),
        "// end cache tags",
    ]


def _join_line_list(lines: Sequence[str]) -> str:
    trimmed = [line.rstrip() for line in lines]
    start_index = 0
    while start_index < len(trimmed) and not trimmed[start_index]:
        start_index += 1
    end_index = len(trimmed)
    while end_index > start_index and not trimmed[end_index - 1]:
        end_index -= 1
    return LINE_TERMINATOR.join(trimmed[start_index:end_index])


def _radar_values_text(steps: Steps) -> str:
    values: List[str] = []
    for player in PlayerNumber:
        radar_values = steps.radar_values_for(player)
        for category in RadarCategory:
            values.append(format_float(radar_values[category]))
    return ",".join(values)


def note_data_text(song: Song, steps: Steps, *, saving_cache: bool) -> str:
    steps_type_name = steps.steps_type.value
    lines: List[str] = []

    lines.append("")
    lines.append(f"//---------------{steps_type_name} - {sm_escape(steps.description)}----------------")
    lines.append("#NOTEDATA:;")
    lines.append(format_tag("CHARTNAME", sm_escape(steps.chart_name)))
    lines.append(format_tag("STEPSTYPE", steps_type_name))
    lines.append(format_tag("DESCRIPTION", sm_escape(steps.description)))
    lines.append(format_tag("CHARTSTYLE", sm_escape(steps.chart_style)))
    lines.append(format_tag("DIFFICULTY", steps.difficulty.value))
    lines.append(format_tag("METER", f"{int(steps.meter)}"))
    lines.append(format_tag("RADARVALUES", _radar_values_text(steps)))
    lines.append(format_tag("CREDIT", sm_escape(steps.credit)))

    if song.timing != steps.timing:
        lines.append(format_tag("OFFSET", format_float(steps.timing.beat0_offset_seconds)))
        lines.extend(timing_tag_lines(steps.timing))
    if song.attacks != steps.attacks:
        lines.append(format_tag("ATTACKS", steps.attacks))

    display_bpm_line = format_display_bpm(steps.display_bpm)
    if display_bpm_line is not None:
        lines.append(display_bpm_line)

    if saving_cache:
        lines.append(format_tag("STEPFILENAME", steps.filename))
    else:
        lines.append("#NOTES2:" if song.keysound_files else "#NOTES:")
        lines.extend(line for line in steps.note_data.lstrip().split("\n") if line)
        lines.append(";")

    return _join_line_list(lines)


def render_song_document(song: Song, steps_to_save: Sequence[Steps], *, saving_cache: bool = False) -> str:
    """Full .ssc text without the final line terminator.

    Charts are written in the order given. A chart passed twice is written once.
    """
    lines = global_tag_lines(song)
    if saving_cache:
        lines.extend(cache_tag_lines(song))

    written_ids = set()
    for steps in steps_to_save:
        if id(steps) in written_ids:
            continue
        written_ids.add(id(steps))
        lines.append(note_data_text(song, steps, saving_cache=saving_cache))

    return LINE_TERMINATOR.join(lines)


def _song_dir_without_root(song_dir: str) -> str:
    # "Songs/Group/Title/" -> "Group/Title"
    parts = [part for part in str(song_dir or "").replace("\\", "/").split("/") if part]
    return "/".join(parts[1:])


def edit_file_contents(song: Song, steps: Steps) -> str:
    song_line = format_tag("SONG", _song_dir_without_root(song.song_dir))
    return song_line + LINE_TERMINATOR + note_data_text(song, steps, saving_cache=False)


def edit_file_name(song: Song, steps: Steps) -> str:
    """Best-effort unique name. Descriptions are case sensitive, most filesystems are not."""
    file_name = f"{song.translit_full_title()} - {steps.description}"
    if steps.steps_type is StepsType.DANCE_DOUBLE:
        file_name += " (doubles)"
    file_name += EDIT_FILE_EXTENSION
    return paths.make_valid_filename(file_name)


def _resolve_writer_config(writer_config: Optional[WriterConfig]) -> WriterConfig:
    if writer_config is not None:
        return writer_config
    loaded_config, _config_path = get_config()
    return loaded_config


def write_song(
    path: Union[str, Path],
    song: Song,
    steps_to_save: Optional[Sequence[Steps]] = None,
    *,
    saving_cache: bool = False,
    storage: Optional[Storage] = None,
    writer_config: Optional[WriterConfig] = None,
) -> SaveResult:
    """Write a song file. Cache files skip note data and the slow flush."""
    output_path = Path(path)
    selected_steps = list(song.steps) if steps_to_save is None else list(steps_to_save)
    active_storage = storage if storage is not None else LocalFileStorage()
    slow_flush = (not saving_cache) and _resolve_writer_config(writer_config).writer.slow_flush

    document_text = render_song_document(song, selected_steps, saving_cache=saving_cache)
    try:
        write_blob(active_storage, output_path, document_text, slow_flush=slow_flush)
    except SscWriteError as exc:
        logger.warning("Song file %s could not be written: %s", output_path, exc)
        return SaveResult(ok=False, path=output_path, error_text=str(exc))

    logger.debug("Saved song file %s with %d charts (cache=%s)", output_path, len(selected_steps), saving_cache)
    return SaveResult(ok=True, path=output_path)


def write_edit_file_to_machine(
    song: Song,
    steps: Steps,
    *,
    edits_dir: Optional[Union[str, Path]] = None,
    storage: Optional[Storage] = None,
    writer_config: Optional[WriterConfig] = None,
) -> SaveResult:
    """Save one chart as an edit file and follow it if its name changed.

    The new file is flushed before the previous one is removed, so a failure part way
    through always leaves at least one copy on disk. On success steps.filename points at
    the new file and steps.saved_to_disk is set, so the next save under a different name
    runs the collision check against this file.
    """
    directory = Path(edits_dir) if edits_dir is not None else paths.edit_steps_dir(writer_config)
    destination = directory / edit_file_name(song, steps)
    active_storage = storage if storage is not None else LocalFileStorage()
    previous_path = Path(steps.filename) if steps.filename else None

    try:
        removed = durable_replace(
            active_storage,
            destination=destination,
            payload=edit_file_contents(song, steps),
            previous_path=previous_path,
            previously_saved=steps.saved_to_disk,
            slow_flush=True,
        )
    except SscWriteError as exc:
        logger.warning("Edit file %s could not be saved: %s", destination, exc)
        return SaveResult(ok=False, path=destination, error_text=str(exc))

    steps.filename = str(destination)
    steps.saved_to_disk = True
    return SaveResult(ok=True, path=destination, removed_path=previous_path if removed else None)
