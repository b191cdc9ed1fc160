import json

import pytest

from watchtower.api.errors import ArtifactError
from watchtower.rewards.artifact import ArtifactCache, ArtifactPaths, RewardsArtifact, write_atomic
from tests.helpers import MERKLE_ROOT, make_artifact

pytestmark = pytest.mark.unit


@pytest.fixture
def cache():
    return ArtifactCache()


@pytest.fixture
def paths(tmp_path):
    return ArtifactPaths.for_interval(tmp_path / "trees", 10)


def test_paths_are_per_interval(paths, tmp_path):
    assert paths.rewards == tmp_path / "trees" / "rewards-10.json"
    assert paths.performance == tmp_path / "trees" / "performance-10.json"
    assert paths.rewards_compressed.name == "rewards-10.json.zst"
    assert paths.performance_compressed.name == "performance-10.json.zst"


def test_absent_file_is_not_valid(cache, paths):
    assert not cache.is_valid(paths.rewards, 1)


def test_saved_artifact_is_valid_for_same_interval_count(cache, paths):
    data = cache.save(paths.rewards, make_artifact(intervals_passed=1))
    assert paths.rewards.read_bytes() == data
    assert cache.is_valid(paths.rewards, 1)
    assert cache.load(paths.rewards).merkle_root == MERKLE_ROOT


def test_artifact_for_fewer_intervals_is_stale(cache, paths, caplog):
    cache.save(paths.rewards, make_artifact(intervals_passed=1))
    caplog.set_level("INFO", logger="watchtower")
    assert not cache.is_valid(paths.rewards, 2)
    assert any(getattr(r, "event", None) == "artifact.stale" for r in caplog.records)


@pytest.mark.parametrize(
    "content",
    [
        b"",
        b"{not json",
        b"[]",
        json.dumps({"interval_index": 10}).encode(),
    ],
)
def test_unreadable_content_is_not_valid(cache, paths, content):
    paths.rewards.parent.mkdir(parents=True)
    paths.rewards.write_bytes(content)
    assert not cache.is_valid(paths.rewards, 1)


def test_unknown_field_is_rejected(cache, paths):
    raw = json.loads(make_artifact().to_bytes())
    raw["surprise"] = True
    paths.rewards.parent.mkdir(parents=True)
    paths.rewards.write_text(json.dumps(raw))
    with pytest.raises(ArtifactError):
        cache.load(paths.rewards)
    assert not cache.is_valid(paths.rewards, 1)


def test_negative_reward_is_rejected():
    raw = json.loads(make_artifact().to_bytes())
    raw["treasury_reward"] = -1
    with pytest.raises(ArtifactError):
        RewardsArtifact.from_bytes(json.dumps(raw).encode())


def test_save_overwrites_and_leaves_no_temp_files(cache, paths):
    cache.save(paths.rewards, make_artifact(intervals_passed=1))
    cache.save(paths.rewards, make_artifact(intervals_passed=2))
    assert cache.load(paths.rewards).intervals_passed == 2
    assert sorted(p.name for p in paths.rewards.parent.iterdir()) == ["rewards-10.json"]


def test_write_atomic_reports_unwritable_destination(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(ArtifactError):
        write_atomic(blocker / "nested" / "rewards-1.json", b"{}")


def test_canonical_bytes_exclude_content_id():
    a = make_artifact(content_id="")
    b = make_artifact(content_id="bafyexample")
    assert a.canonical_bytes() == b.canonical_bytes()
    assert b"content_id" not in b.canonical_bytes()
    assert b.to_bytes() != a.to_bytes()
    assert RewardsArtifact.from_bytes(b.to_bytes()).content_id == "bafyexample"
