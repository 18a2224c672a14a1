# -*- coding: utf-8 -*-
########################
# paths.py
########################
# Purpose:
# - Central filesystem path helpers for saved songs and edits.
# - Filename sanitizing for names built from song and chart text.
#
# Design notes:
# - Keep path derivation consistent across modules.
# - Directories are not created here. durable_store.py creates parents on open.
#
########################
# Interfaces:
# Public functions:
# - make_valid_filename(file_name: str) -> str
# - machine_profile_dir(writer_config: Optional[WriterConfig] = None) -> pathlib.Path
# - edit_steps_dir(writer_config: Optional[WriterConfig] = None) -> pathlib.Path
#
# Inputs:
# - WriterConfig from config.py (loaded lazily when not passed).
#
# Outputs:
# - Paths used by ssc_store.py.
#
########################

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from config import WriterConfig, get_config


# Characters rejected by FAT/NTFS, plus ASCII control characters.
_INVALID_FILENAME_PATTERN = re.compile(r'[\\/:*?"<>|\x00-\x1f\x7f]')


def make_valid_filename(file_name: str) -> str:
    """Replace characters that are not valid in a file name on common filesystems.

    Windows also rejects names ending in a dot or space, so those are trimmed.
    """
    cleaned = _INVALID_FILENAME_PATTERN.sub("_", str(file_name or ""))
    cleaned = cleaned.rstrip(". ")
    return cleaned or "_"


def _resolve_config(writer_config: Optional[WriterConfig]) -> WriterConfig:
    if writer_config is not None:
        return writer_config
    loaded_config, _config_path = get_config()
    return loaded_config


def machine_profile_dir(writer_config: Optional[WriterConfig] = None) -> Path:
    return Path(_resolve_config(writer_config).profile.machine_profile_dir)


def edit_steps_dir(writer_config: Optional[WriterConfig] = None) -> Path:
    """Return the directory edit files are saved to (not created automatically)."""
    resolved_config = _resolve_config(writer_config)
    return Path(resolved_config.profile.machine_profile_dir) / resolved_config.profile.edit_steps_subdir
