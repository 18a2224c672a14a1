from __future__ import annotations

import json

import pytest

from config import ProfileConfig, WriterConfig, load_config
from paths import edit_steps_dir, machine_profile_dir, make_valid_filename


@pytest.fixture(autouse=True)
def _clear_environment(monkeypatch):
    for name in ("SSC_WRITER_CONFIG_PATH", "SSC_WRITER_PROFILE_DIR", "SSC_WRITER_EDIT_SUBDIR", "SSC_WRITER_SLOW_FLUSH"):
        monkeypatch.delenv(name, raising=False)


def test_load_config_from_file(tmp_path):
    config_path = tmp_path / "ssc_writer_config.json"
    config_path.write_text(
        json.dumps({"profile": {"machine_profile_dir": str(tmp_path / "Profile")}, "writer": {"slow_flush": False}}),
        encoding="utf-8",
    )

    config, resolved_path = load_config(config_path)

    assert resolved_path == config_path
    assert config.profile.machine_profile_dir == str(tmp_path / "Profile")
    assert config.profile.edit_steps_subdir == "Edits"
    assert config.writer.slow_flush is False


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"writer": {"slow_flush": True}}), encoding="utf-8")
    monkeypatch.setenv("SSC_WRITER_SLOW_FLUSH", "off")
    monkeypatch.setenv("SSC_WRITER_PROFILE_DIR", str(tmp_path / "EnvProfile"))

    config, _resolved_path = load_config(config_path)

    assert config.writer.slow_flush is False
    assert config.profile.machine_profile_dir == str(tmp_path / "EnvProfile")


def test_missing_config_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("config._default_config_candidates", lambda: [tmp_path / "nope.json"])

    config, resolved_path = load_config()

    assert resolved_path is None
    assert config.writer.slow_flush is True
    assert config.profile.machine_profile_dir


def test_invalid_json_is_reported(tmp_path):
    config_path = tmp_path / "broken.json"
    config_path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(config_path)


def test_blank_edit_subdir_is_rejected(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"profile": {"edit_steps_subdir": " / "}}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(config_path)


def test_profile_paths(tmp_path):
    config = WriterConfig(profile=ProfileConfig(machine_profile_dir=str(tmp_path), edit_steps_subdir="/MyEdits/"))
    assert machine_profile_dir(config) == tmp_path
    assert edit_steps_dir(config) == tmp_path / "MyEdits"


@pytest.mark.parametrize(
    "raw_name, expected",
    [
        ("Song - Edit.edit", "Song - Edit.edit"),
        ('a/b\\c:d*e?f"g<h>i|j.edit', "a_b_c_d_e_f_g_h_i_j.edit"),
        ("tab\there.edit", "tab_here.edit"),
        ("trailing. ", "trailing"),
        ("", "_"),
    ],
)
def test_make_valid_filename(raw_name, expected):
    assert make_valid_filename(raw_name) == expected
