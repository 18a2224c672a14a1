from __future__ import annotations

from pathlib import Path

import pytest

from durable_store import (
    DestinationCollisionError,
    LocalFile,
    LocalFileStorage,
    OpenFailureError,
    WriteFailureError,
    durable_replace,
    temporary_path_for,
    write_blob,
)


class _BrokenFile:
    def __init__(self, *, fail_on: str) -> None:
        self.fail_on = fail_on
        self.closed = False
        self.discarded = False

    def write(self, text: str) -> None:
        if self.fail_on == "write":
            raise OSError("disk full")

    def put_line(self, text: str) -> None:
        self.write(text)

    def flush(self) -> None:
        if self.fail_on == "flush":
            raise OSError("I/O error")

    def close(self) -> None:
        self.closed = True

    def discard(self) -> None:
        self.discarded = True


class _BrokenStorage(LocalFileStorage):
    def __init__(self, *, fail_on: str) -> None:
        self.fail_on = fail_on
        self.handle = _BrokenFile(fail_on=fail_on)
        self.removed = []

    def open_for_write(self, path: Path, *, slow_flush: bool):
        if self.fail_on == "open":
            raise PermissionError("read-only filesystem")
        return self.handle

    def remove(self, path: Path) -> None:
        self.removed.append(Path(path))


def test_write_blob_writes_text_with_crlf_terminator(tmp_path):
    target = tmp_path / "nested" / "song.ssc"
    write_blob(LocalFileStorage(), target, "#TITLE:x;\r\n#ARTIST:y;", slow_flush=True)
    assert target.read_bytes() == b"#TITLE:x;\r\n#ARTIST:y;\r\n"


def test_write_blob_without_slow_flush(tmp_path):
    target = tmp_path / "cache.ssc"
    write_blob(LocalFileStorage(), target, "cache", slow_flush=False)
    assert target.read_bytes() == b"cache\r\n"


def test_write_blob_open_failure_carries_storage_message(tmp_path):
    with pytest.raises(OpenFailureError) as error_info:
        write_blob(_BrokenStorage(fail_on="open"), tmp_path / "x.ssc", "text", slow_flush=True)
    assert "read-only filesystem" in str(error_info.value)
    assert error_info.value.path == tmp_path / "x.ssc"


@pytest.mark.parametrize("fail_on", ["write", "flush"])
def test_write_blob_write_failure_discards_handle(tmp_path, fail_on):
    storage = _BrokenStorage(fail_on=fail_on)
    with pytest.raises(WriteFailureError):
        write_blob(storage, tmp_path / "x.ssc", "text", slow_flush=True)
    assert storage.handle.discarded
    assert not storage.handle.closed


def test_durable_replace_first_save(tmp_path, recording_storage):
    destination = tmp_path / "Edits" / "a.edit"
    removed = durable_replace(
        recording_storage,
        destination=destination,
        payload="data",
        previous_path=None,
        previously_saved=False,
    )
    assert removed is False
    assert destination.read_bytes() == b"data\r\n"
    assert [operation for operation, _path in recording_storage.operations] == ["open"]


def test_durable_replace_same_path_twice_never_removes(tmp_path, recording_storage):
    destination = tmp_path / "a.edit"
    for payload in ("first", "second"):
        removed = durable_replace(
            recording_storage,
            destination=destination,
            payload=payload,
            previous_path=destination,
            previously_saved=True,
        )
        assert removed is False
    assert destination.read_bytes() == b"second\r\n"
    assert all(operation != "remove" for operation, _path in recording_storage.operations)


def test_durable_replace_moves_file_and_removes_old_after_write(tmp_path, recording_storage):
    old_path = tmp_path / "old.edit"
    old_path.write_text("old", encoding="utf-8")
    new_path = tmp_path / "new.edit"

    removed = durable_replace(
        recording_storage,
        destination=new_path,
        payload="new",
        previous_path=old_path,
        previously_saved=True,
    )

    assert removed is True
    assert not old_path.exists()
    assert new_path.read_bytes() == b"new\r\n"
    assert recording_storage.operations == [
        ("exists", new_path),
        ("open", new_path),
        ("remove", old_path),
    ]


def test_durable_replace_collision_touches_nothing(tmp_path, recording_storage):
    old_path = tmp_path / "A.edit"
    old_path.write_text("old contents", encoding="utf-8")
    taken_path = tmp_path / "B.edit"
    taken_path.write_text("someone else", encoding="utf-8")

    with pytest.raises(DestinationCollisionError) as error_info:
        durable_replace(
            recording_storage,
            destination=taken_path,
            payload="new contents",
            previous_path=old_path,
            previously_saved=True,
        )

    assert "already exists" in str(error_info.value)
    assert old_path.read_text(encoding="utf-8") == "old contents"
    assert taken_path.read_text(encoding="utf-8") == "someone else"
    assert [operation for operation, _path in recording_storage.operations] == ["exists"]


def test_durable_replace_unsaved_entity_may_overwrite_existing_file(tmp_path, recording_storage):
    existing = tmp_path / "B.edit"
    existing.write_text("stale", encoding="utf-8")
    removed = durable_replace(
        recording_storage,
        destination=existing,
        payload="fresh",
        previous_path=tmp_path / "A.edit",
        previously_saved=False,
    )
    assert removed is False
    assert existing.read_bytes() == b"fresh\r\n"


def test_durable_replace_keeps_old_file_when_write_fails(tmp_path):
    old_path = tmp_path / "old.edit"
    old_path.write_text("old", encoding="utf-8")
    storage = _BrokenStorage(fail_on="flush")

    with pytest.raises(WriteFailureError):
        durable_replace(
            storage,
            destination=tmp_path / "new.edit",
            payload="new",
            previous_path=old_path,
            previously_saved=True,
        )

    assert storage.removed == []
    assert old_path.read_text(encoding="utf-8") == "old"


def test_durable_replace_tolerates_failed_cleanup(tmp_path, recording_storage):
    missing_old_path = tmp_path / "gone.edit"
    new_path = tmp_path / "new.edit"
    removed = durable_replace(
        recording_storage,
        destination=new_path,
        payload="new",
        previous_path=missing_old_path,
        previously_saved=True,
    )
    assert removed is False
    assert new_path.exists()


class _ShortWriteFile(LocalFile):
    def put_line(self, text: str) -> None:
        self.write(text[:10])
        raise OSError("No space left on device")


class _ShortWriteStorage(LocalFileStorage):
    def open_for_write(self, path: Path, *, slow_flush: bool) -> LocalFile:
        target_path = Path(path)
        temporary_path = temporary_path_for(target_path)
        handle = open(temporary_path, "w", encoding="utf-8", newline="")
        return _ShortWriteFile(handle, target_path=target_path, temporary_path=temporary_path, slow_flush=slow_flush)


def test_local_storage_writes_through_temporary_sibling(tmp_path):
    target = tmp_path / "song.ssc"
    handle = LocalFileStorage().open_for_write(target, slow_flush=False)
    handle.put_line("body")
    handle.flush()

    assert not target.exists()
    assert temporary_path_for(target) == tmp_path / "song.ssc.tmp"

    handle.close()

    assert target.read_bytes() == b"body\r\n"
    assert not temporary_path_for(target).exists()


def test_failed_resave_to_same_path_keeps_existing_file(tmp_path):
    destination = tmp_path / "a.edit"
    durable_replace(
        LocalFileStorage(),
        destination=destination,
        payload="#SONG:Group/Test;",
        previous_path=None,
        previously_saved=False,
    )

    with pytest.raises(WriteFailureError) as error_info:
        durable_replace(
            _ShortWriteStorage(),
            destination=destination,
            payload="#SONG:Group/Test;\r\n#NOTES:changed",
            previous_path=destination,
            previously_saved=True,
        )

    assert "No space left on device" in str(error_info.value)
    assert destination.read_bytes() == b"#SONG:Group/Test;\r\n"
    assert not temporary_path_for(destination).exists()


def test_unencodable_text_fails_before_opening(tmp_path, recording_storage):
    target = tmp_path / "song.ssc"
    target.write_bytes(b"previous\r\n")

    with pytest.raises(WriteFailureError) as error_info:
        write_blob(recording_storage, target, "#KEYSOUNDS:kick\udcff.wav;", slow_flush=True)

    assert error_info.value.path == target
    assert recording_storage.operations == []
    assert target.read_bytes() == b"previous\r\n"
