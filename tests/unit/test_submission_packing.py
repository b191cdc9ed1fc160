import pytest

from watchtower.api.errors import ArtifactError
from watchtower.rewards.artifact import NetworkRewards
from watchtower.tasks.rewards import REWARDS_POOL_CONTRACT, SUBMIT_METHOD, RewardSubmission
from tests.helpers import make_artifact

pytestmark = pytest.mark.unit


def _pack(artifact):
    return RewardSubmission.from_artifact(artifact, cid="bafyroot", consensus_block=39_231, execution_block=1_039_231)


def test_networks_are_packed_in_id_order():
    sub = _pack(make_artifact())
    assert sub.node_collateral_rewards == (7 * 10**20, 2 * 10**20)
    assert sub.oracle_rewards == (10**20, 0)
    assert sub.node_pool_rewards == (3 * 10**18, 10**18)
    assert sub.merkle_root == bytes.fromhex("ab" * 32)


def test_first_missing_network_ends_the_arrays():
    networks = {
        0: NetworkRewards(collateral_reward=1),
        1: NetworkRewards(collateral_reward=2),
        3: NetworkRewards(collateral_reward=4),
    }
    sub = _pack(make_artifact(network_rewards=networks))
    assert sub.node_collateral_rewards == (1, 2)


def test_short_root_is_left_padded():
    sub = _pack(make_artifact(merkle_root="0x01"))
    assert sub.merkle_root == b"\x00" * 31 + b"\x01"


@pytest.mark.parametrize("root", ["0xzz", "0x" + "ab" * 33])
def test_bad_root_is_an_artifact_error(root):
    with pytest.raises(ArtifactError):
        _pack(make_artifact(merkle_root=root))


def test_call_carries_one_tuple_argument():
    call = _pack(make_artifact(intervals_passed=3)).as_call()
    assert (call.contract, call.method) == (REWARDS_POOL_CONTRACT, SUBMIT_METHOD)
    assert len(call.args) == 1
    (submission,) = call.args
    assert submission[0] == 10
    assert submission[1:6] == (1_039_231, 39_231, bytes.fromhex("ab" * 32), "bafyroot", 3)
    assert submission[7] == [7 * 10**20, 2 * 10**20]
    assert call.value == 0
