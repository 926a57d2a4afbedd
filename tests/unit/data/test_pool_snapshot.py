from __future__ import annotations

import pytest

from helpers.factories import assert_keys, make_position, make_snapshot

from amm_engine.data.snapshot import PoolSnapshot
from amm_engine.exceptions import InvalidAmount


def test_snapshot_rejects_one_sided_reserves() -> None:
    with pytest.raises(ValueError):
        PoolSnapshot(0, 10, 0, 1.0)
    with pytest.raises(ValueError):
        PoolSnapshot(10, 0, 0, 1.0)


def test_snapshot_rejects_negative_and_float_amounts() -> None:
    with pytest.raises(InvalidAmount):
        PoolSnapshot(-1, -1, 0, 1.0)
    with pytest.raises(InvalidAmount):
        PoolSnapshot(1.5, 2, 1, 1.0)  # type: ignore[arg-type]


def test_snapshot_properties() -> None:
    snap = make_snapshot(500, 500, fetched_at=10.0)
    assert not snap.is_empty
    assert snap.k == 250_000
    assert snap.age(12.5) == 2.5
    assert snap.age(5.0) == 0.0
    assert_keys(snap, {"reserve_x", "reserve_y", "lp_total_supply", "fetched_at"})
    assert make_snapshot(0, 0, supply=0).is_empty


def test_snapshot_from_mapping() -> None:
    snap = PoolSnapshot.from_mapping({"reserve_x": 1, "reserve_y": 2, "lp_total_supply": 1}, fetched_at=3)
    assert snap == PoolSnapshot(1, 2, 1, 3.0)


def test_position_balance_lookup() -> None:
    pos = make_position(x=1, y=2, lp=3)
    assert pos.balance_of("token_x") == 1
    assert pos.balance_of("token_y") == 2
    assert pos.balance_of("lp_token") == 3
    with pytest.raises(KeyError):
        pos.balance_of("token_z")
