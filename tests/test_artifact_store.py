import base64

import pytest

from narrator.errors import DecodeError, StorageError
from narrator.storage.artifacts import ArtifactKey, ArtifactStore


def test_key_and_paths_are_deterministic(out_root):
    store = ArtifactStore(out_root)
    key = store.key_for("Chapter 1", "Hello world.")
    assert key == ArtifactKey("Chapter_1", "Hello_world_")
    assert store.key_for("Chapter 1", "Hello world.") == key
    assert store.text_path(key) == out_root / "Chapter_1" / "Hello_world_.txt"
    assert store.audio_path(key) == out_root / "Chapter_1" / "Hello_world_.mp3"
    assert store.public_path(key) == "/output/Chapter_1/Hello_world_.mp3"


def test_public_prefix_is_normalized(out_root):
    store = ArtifactStore(out_root, public_prefix="media/")
    assert store.public_path(ArtifactKey("p", "l")) == "/media/p/l.mp3"


def test_ensure_directory_creates_parents_and_is_idempotent(tmp_path):
    store = ArtifactStore(tmp_path / "deep" / "output")
    p1 = store.ensure_directory("Chapter_1")
    p2 = store.ensure_directory("Chapter_1")
    assert p1 == p2 and p1.is_dir()


def test_ensure_directory_wraps_os_errors(tmp_path):
    blocker = tmp_path / "output"
    blocker.write_text("not a directory", encoding="utf-8")
    store = ArtifactStore(blocker)
    with pytest.raises(StorageError):
        store.ensure_directory("Chapter_1")


def test_write_text_overwrites(out_root):
    store = ArtifactStore(out_root)
    key = store.key_for("p", "l")
    store.ensure_directory(key.directory)
    path = store.text_path(key)
    store.write_text(path, "first")
    store.write_text(path, "sécond")
    assert path.read_text(encoding="utf-8") == "sécond"
    assert sorted(p.name for p in path.parent.iterdir()) == ["l.txt"]


def test_write_text_missing_directory_is_storage_error(out_root):
    store = ArtifactStore(out_root)
    with pytest.raises(StorageError):
        store.write_text(out_root / "nope" / "x.txt", "x")


def test_write_binary_decodes_base64(out_root):
    store = ArtifactStore(out_root)
    key = store.key_for("p", "l")
    store.ensure_directory(key.directory)
    raw = b"\x00\x01ID3 audio \xff"
    n = store.write_binary(store.audio_path(key), base64.b64encode(raw).decode())
    assert n == len(raw)
    assert store.audio_path(key).read_bytes() == raw


@pytest.mark.parametrize("bad", ["not base64!!", "abc", "éé=="])
def test_write_binary_rejects_malformed_base64_without_writing(out_root, bad):
    store = ArtifactStore(out_root)
    key = store.key_for("p", "l")
    store.ensure_directory(key.directory)
    with pytest.raises(DecodeError):
        store.write_binary(store.audio_path(key), bad)
    assert not store.audio_path(key).exists()
