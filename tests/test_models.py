from concurrent.futures import ThreadPoolExecutor

import pytest

from media_reorganizer.exceptions import ConfigurationError
from media_reorganizer.models import CandidatePath, FileOutcome, ProcessingStatistics, RunConfig


def test_statistics_are_thread_safe():
    stats = ProcessingStatistics()
    outcomes = [FileOutcome(f"/src/{i}.jpg", ('processed', 'skipped', 'error')[i % 3], transferred=i % 2 == 0)
                for i in range(3000)]

    with ThreadPoolExecutor(max_workers=12) as executor:
        list(executor.map(stats.record, outcomes))

    snap = stats.snapshot()
    assert (snap['processed'], snap['skipped'], snap['errored']) == (1000, 1000, 1000)
    assert snap['transferred'] == 1500
    assert stats.completed == 3000


def test_candidate_paths_keep_sorted_position():
    candidates = CandidatePath.from_sorted(["/src/a/IMG_2.JPG", "/src/a/IMG_10.mov"])
    assert [(c.name, c.ext, c.position) for c in candidates] == [("IMG_2.JPG", ".JPG", 0), ("IMG_10.mov", ".mov", 1)]


def test_scan_root_honours_test_dir():
    assert RunConfig("/photos", "/lib").scan_root == "/photos"
    assert RunConfig("/photos", "/lib", test_dir="2019/Rome").scan_root == "/photos/2019/Rome"


def test_remote_dest_defaults_to_source_host():
    cfg = RunConfig("/photos", "/lib", ssh_host="nas", remote_dest=True)
    assert cfg.dest_ssh_host == "nas"

    cfg = RunConfig("/photos", "/lib", ssh_host="nas", dest_ssh_host="backup", remote_dest=True)
    assert cfg.dest_ssh_host == "backup"


@pytest.mark.parametrize(
    "kwargs",
    [
        dict(source_root="", dest_root="/lib"),
        dict(source_root="/photos", dest_root=""),
        dict(source_root="/photos", dest_root="/lib", workers=0),
        dict(source_root="/photos", dest_root="/lib", remote_dest=True),
    ],
)
def test_invalid_configs(kwargs):
    with pytest.raises(ConfigurationError):
        RunConfig(**kwargs).validate()


def test_valid_config_passes():
    RunConfig("/photos", "/lib", ssh_host="nas", remote_dest=True, workers=8).validate()
