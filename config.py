"""
config.py

Typed configuration loading and validation for the .ssc writer.

Design goals
- Load at most one UTF-8 JSON config file
- Validate with pydantic (defaults included)
- Support environment variable overrides
- No other I/O beyond reading the config file (no directory creation)

Config file location
- If SSC_WRITER_CONFIG_PATH is set, that file is used (and must exist).
- Otherwise these paths are searched in order and the first one that exists is used:
  1) ./ssc_writer_config.json (current working directory)
  2) <user config dir>/ssc_writer/ssc_writer_config.json
- When none exists the defaults are used. The writer works without a config file.

Example config file (ssc_writer_config.json)
{
  "profile": {
    "machine_profile_dir": "D:/StepMania/Save/MachineProfile",
    "edit_steps_subdir": "Edits"
  },
  "writer": {
    "slow_flush": true
  }
}
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from platformdirs import user_config_dir, user_data_dir
from pydantic import BaseModel, Field, ValidationError, field_validator


APP_NAME = "ssc_writer"


def _default_machine_profile_dir() -> str:
    return str(Path(user_data_dir(APP_NAME)) / "Save" / "MachineProfile")


class ProfileConfig(BaseModel):
    machine_profile_dir: str = Field(
        default_factory=_default_machine_profile_dir,
        description="Machine profile directory. Edit files are saved below it.",
    )
    edit_steps_subdir: str = Field(default="Edits", description="Edit file folder inside the machine profile.")

    @field_validator("edit_steps_subdir")
    @classmethod
    def validate_edit_steps_subdir(cls, value: str) -> str:
        normalized = (value or "").strip().strip("/\\")
        if not normalized:
            raise ValueError("edit_steps_subdir must not be empty")
        return normalized


class WriterSettings(BaseModel):
    slow_flush: bool = Field(default=True, description="fsync song files after writing. Cache files never fsync.")


class WriterConfig(BaseModel):
    profile: ProfileConfig = Field(default_factory=ProfileConfig)
    writer: WriterSettings = Field(default_factory=WriterSettings)


def _default_config_candidates() -> List[Path]:
    config_directory = Path(user_config_dir(APP_NAME))
    return [
        Path.cwd() / "ssc_writer_config.json",
        config_directory / "ssc_writer_config.json",
    ]


def _resolve_config_path() -> Optional[Path]:
    explicit_path_text = os.environ.get("SSC_WRITER_CONFIG_PATH", "").strip()
    if explicit_path_text:
        return Path(explicit_path_text)

    for candidate_path in _default_config_candidates():
        if candidate_path.exists():
            return candidate_path

    return None


def _read_json_file_utf8(config_path: Path) -> Dict[str, Any]:
    try:
        raw_text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exception:
        raise OSError(f"Failed to read config file: {config_path}. Error: {exception}") from exception

    try:
        parsed = json.loads(raw_text)
    except json.JSONDecodeError as exception:
        raise ValueError(f"Config file is not valid JSON: {config_path}. Error: {exception}") from exception

    if not isinstance(parsed, dict):
        raise ValueError(f"Config file root must be a JSON object: {config_path}")

    return parsed


def _apply_environment_overrides(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Override variables:
    - SSC_WRITER_PROFILE_DIR
    - SSC_WRITER_EDIT_SUBDIR
    - SSC_WRITER_SLOW_FLUSH
    """
    def ensure_nested(config_root: Dict[str, Any], section_name: str) -> Dict[str, Any]:
        section = config_root.get(section_name)
        if isinstance(section, dict):
            return section
        section = {}
        config_root[section_name] = section
        return section

    updated_config = dict(config_dict)

    profile_section = ensure_nested(updated_config, "profile")
    writer_section = ensure_nested(updated_config, "writer")

    def override_string(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "")
        if value_text.strip():
            target_dict[key_name] = value_text.strip()

    def override_bool(env_name: str, target_dict: Dict[str, Any], key_name: str) -> None:
        value_text = os.environ.get(env_name, "").strip().lower()
        if not value_text:
            return
        truthy = {"1", "true", "yes", "on"}
        falsy = {"0", "false", "no", "off"}
        if value_text in truthy:
            target_dict[key_name] = True
        elif value_text in falsy:
            target_dict[key_name] = False

    override_string("SSC_WRITER_PROFILE_DIR", profile_section, "machine_profile_dir")
    override_string("SSC_WRITER_EDIT_SUBDIR", profile_section, "edit_steps_subdir")
    override_bool("SSC_WRITER_SLOW_FLUSH", writer_section, "slow_flush")

    return updated_config


def load_config(config_path: Optional[Path] = None) -> Tuple[WriterConfig, Optional[Path]]:
    resolved_path = config_path if config_path is not None else _resolve_config_path()
    json_dict: Dict[str, Any] = {}
    if resolved_path is not None:
        json_dict = _read_json_file_utf8(resolved_path)
    json_dict = _apply_environment_overrides(json_dict)

    try:
        config = WriterConfig.model_validate(json_dict)
    except ValidationError as exception:
        source_text = str(resolved_path) if resolved_path is not None else "defaults"
        raise ValueError(f"Config validation failed for {source_text}:\n{exception}") from exception

    return config, resolved_path


@lru_cache(maxsize=1)
def get_config() -> Tuple[WriterConfig, Optional[Path]]:
    return load_config()


def main() -> int:
    try:
        config, resolved_path = load_config()
    except Exception as exception:
        error_payload = {"ok": False, "error": str(exception)}
        print(json.dumps(error_payload, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "config_path": str(resolved_path) if resolved_path is not None else None,
        "config": config.model_dump(),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
