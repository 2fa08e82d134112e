import subprocess

import pytest

import media_reorganizer.scanning.filesystem as filesystem_module
import media_reorganizer.scanning.remote as remote_module
from media_reorganizer import config
from media_reorganizer.exceptions import EnumerationError, TransferError
from media_reorganizer.scanning.filesystem import LocalStorage, classify
from media_reorganizer.scanning.remote import RemoteHost, RemoteStorage, ssh_base_command


def test_classify_extension():
    assert classify("a/IMG_1.JPG") == 'image'
    assert classify("clip.MTS") == 'video'
    assert classify("notes.txt") is None
    assert classify("._IMG_1.jpg") is None
    assert config.EXT_TO_TYPE.get('.heic') == 'image'


def test_local_listing_filters_and_excludes(tmp_path):
    root = tmp_path / "src"
    (root / "2019" / "@eaDir" / "a.jpg").mkdir(parents=True)
    (root / "2019" / "@eaDir" / "a.jpg" / "SYNOFILE_THUMB_M.jpg").write_bytes(b"t")
    (root / "2019" / "a.jpg").write_bytes(b"a")
    (root / "2019" / "._a.jpg").write_bytes(b"fork")
    (root / "2019" / "notes.txt").write_text("n")
    (root / "clip.mov").write_bytes(b"v")

    files = LocalStorage().list_media_files(root)

    assert sorted(files) == sorted([str(root / "2019" / "a.jpg"), str(root / "clip.mov")])


def test_local_listing_missing_root(tmp_path):
    with pytest.raises(EnumerationError):
        LocalStorage().list_media_files(tmp_path / "nope")


def test_local_put_copies_then_finalizes(tmp_path):
    src = tmp_path / "in.jpg"
    src.write_bytes(b"payload")
    dest = tmp_path / "out" / "2024" / "2024-01" / "x.jpg"

    seen = []

    def finalize(path):
        # The copy must be complete before finalize runs
        seen.append((path, path.read_bytes()))

    storage = LocalStorage()
    storage.put(src, str(dest), finalize)

    assert dest.read_bytes() == b"payload"
    assert seen == [(dest, b"payload")]
    assert storage.exists(str(dest))


def test_local_put_failure_raises_transfer_error(tmp_path):
    with pytest.raises(TransferError):
        LocalStorage().put(tmp_path / "missing.jpg", str(tmp_path / "out" / "x.jpg"))


def test_local_put_interrupted_copy_leaves_nothing_behind(monkeypatch, tmp_path):
    src = tmp_path / "in.jpg"
    src.write_bytes(b"complete image bytes")
    dest = tmp_path / "out" / "x.jpg"

    def short_copy(fsrc, fdst, length=0):
        fdst.write(fsrc.read(4))
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(filesystem_module.shutil, "copyfileobj", short_copy)

    with pytest.raises(TransferError, match="No space left"):
        LocalStorage().put(src, str(dest))

    assert not dest.exists()
    assert not (tmp_path / "out" / f"x.jpg{config.PARTIAL_SUFFIX}").exists()


def test_local_put_replaces_stale_partial(tmp_path):
    src = tmp_path / "in.jpg"
    src.write_bytes(b"fresh")
    dest = tmp_path / "out" / "x.jpg"
    dest.parent.mkdir()
    (dest.parent / "x.jpg.part").write_bytes(b"stale")

    LocalStorage().put(src, str(dest))

    assert dest.read_bytes() == b"fresh"
    assert not (dest.parent / "x.jpg.part").exists()


@pytest.mark.parametrize(
    "host,expected",
    [
        ("nas", ["ssh", "-o", "BatchMode=yes", "nas"]),
        ("user@nas", ["ssh", "-o", "BatchMode=yes", "user@nas"]),
        ("user@nas:2222", ["ssh", "-o", "BatchMode=yes", "-p", "2222", "user@nas"]),
    ],
)
def test_ssh_base_command(host, expected):
    assert ssh_base_command(host) == expected


def test_remote_host_lists_with_quoted_find(monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="/photos/My Trip/a.jpg\n/photos/My Trip/b.txt\n\n")

    monkeypatch.setattr(remote_module.subprocess, "run", fake_run)

    files = RemoteHost("nas").list_files("/photos/My Trip")

    assert files == ["/photos/My Trip/a.jpg", "/photos/My Trip/b.txt"]
    assert calls[0][-1] == "find '/photos/My Trip' -type f"


def test_remote_host_listing_failure(monkeypatch):
    def failing(cmd, **kwargs):
        raise subprocess.CalledProcessError(255, cmd)

    monkeypatch.setattr(remote_module.subprocess, "run", failing)

    with pytest.raises(EnumerationError):
        RemoteHost("nas").list_files("/photos")


def test_remote_host_exists(monkeypatch):
    monkeypatch.setattr(remote_module.subprocess, "run",
                        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="exists\n"))
    assert RemoteHost("nas").exists("/lib/a.jpg")

    monkeypatch.setattr(remote_module.subprocess, "run",
                        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 0, stdout="notfound\n"))
    assert not RemoteHost("nas").exists("/lib/a.jpg")


def test_remote_upload_publishes_through_partial(monkeypatch, tmp_path):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append((cmd, kwargs['stdin'].read()))
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr(remote_module.subprocess, "run", fake_run)
    local = tmp_path / "a.jpg"
    local.write_bytes(b"bytes")

    RemoteHost("nas").upload(local, "/lib/My Trip/a.jpg")

    cmd, sent = calls[0]
    assert cmd[:-1] == ["ssh", "-o", "BatchMode=yes", "nas"]
    assert cmd[-1] == ("cat > '/lib/My Trip/a.jpg.part' && mv -f '/lib/My Trip/a.jpg.part' '/lib/My Trip/a.jpg'"
                       " || { rm -f '/lib/My Trip/a.jpg.part'; exit 1; }")
    assert sent == b"bytes"


def test_remote_upload_failure(monkeypatch, tmp_path):
    def failing(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(remote_module.subprocess, "run", failing)
    local = tmp_path / "a.jpg"
    local.write_bytes(b"bytes")

    with pytest.raises(TransferError):
        RemoteHost("nas").upload(local, "/lib/a.jpg")


def test_remote_listing_filters(fake_host):
    host = fake_host({
        "/src/a.jpg": b"a",
        "/src/@eaDir/a.jpg/thumb.jpg": b"t",
        "/src/._a.jpg": b"x",
        "/src/readme.txt": b"r",
        "/other/b.jpg": b"b",
    })
    assert RemoteStorage(host).list_media_files("/src") == ["/src/a.jpg"]


def test_remote_fetch_cleans_up_temp_copy(fake_host):
    storage = RemoteStorage(fake_host({"/src/a.jpg": b"abc"}))

    with storage.fetch("/src/a.jpg") as local:
        assert local.read_bytes() == b"abc"
        kept = local
    assert not kept.exists()


def test_remote_edit_uploads_changes(fake_host):
    host = fake_host({"/lib/a.jpg": b"old"})

    with RemoteStorage(host).edit("/lib/a.jpg") as local:
        local.write_bytes(b"new")

    assert host.files["/lib/a.jpg"] == b"new"


def test_remote_put_finalizes_before_upload(tmp_path, fake_host):
    host = fake_host()
    src = tmp_path / "in.jpg"
    src.write_bytes(b"raw")
    staged_paths = []

    def finalize(path):
        staged_paths.append(path)
        assert host.uploads == []
        path.write_bytes(path.read_bytes() + b"+exif")

    storage = RemoteStorage(host)
    storage.put(src, "/lib/2024/2024-01/x.jpg", finalize)

    assert host.files["/lib/2024/2024-01/x.jpg"] == b"raw+exif"
    assert "/lib/2024/2024-01" in host.dirs
    assert not staged_paths[0].exists()
    assert src.read_bytes() == b"raw"


def test_remote_join_is_posix(fake_host):
    assert RemoteStorage(fake_host()).join("/lib", "2024/2024-01", "x.jpg") == "/lib/2024/2024-01/x.jpg"
