from __future__ import annotations

import pytest

from swapcast.errors import InvalidFeeRate, ZeroStake
from swapcast.fees import compute_fee, delta_stake, split_stake, validate_fee_bps


def test_split_stake_takes_fee_first():
    fee, net = split_stake(1000, 500)
    assert (fee, net) == (50, 950)


def test_fee_rounds_down():
    assert compute_fee(19, 500) == 0
    assert compute_fee(20, 500) == 1
    assert split_stake(19, 500) == (0, 19)


def test_zero_fee_rate_keeps_full_stake():
    assert split_stake(12345, 0) == (0, 12345)


def test_fee_handles_uint256_sized_amounts():
    gross = 10**60
    fee, net = split_stake(gross, 250)
    assert fee == gross * 250 // 10_000
    assert fee + net == gross


@pytest.mark.parametrize("fee_bps", [-1, 2001])
def test_validate_fee_bps_rejects_out_of_range(fee_bps):
    with pytest.raises(InvalidFeeRate):
        validate_fee_bps(fee_bps, 2000)


def test_validate_fee_bps_accepts_bounds():
    assert validate_fee_bps(0, 2000) == 0
    assert validate_fee_bps(2000, 2000) == 2000


def test_delta_stake_is_share_of_output():
    assert delta_stake(50_000, 100) == 500


def test_delta_stake_rounding_to_zero_is_rejected():
    with pytest.raises(ZeroStake):
        delta_stake(99, 100)


def test_delta_stake_rejects_invalid_rate():
    with pytest.raises(ValueError):
        delta_stake(1_000, 0)
