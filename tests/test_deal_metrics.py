"""Tests for stage grouping and pipeline-wide deal metrics."""

from __future__ import annotations

import random

import pytest

from src.crm.deals.metrics import calculate_deal_metrics, group_by_stage
from src.crm.entities.schemas import Deal, DealStatus, PipelineStage


def _stage(stage_id: str, position: int) -> PipelineStage:
    return PipelineStage(id=stage_id, pipeline_id="p1", name=stage_id, position=position)


def _deal(deal_id: str, *, value: float = 0, status: str = "open", probability: int = 0,
          stage_id: str | None = None, currency: str = "USD") -> Deal:
    return Deal(
        id=deal_id,
        name=deal_id,
        value=value,
        status=DealStatus(status),
        probability=probability,
        stage_id=stage_id,
        currency=currency,
    )


STAGES = [_stage("s2", 1), _stage("s1", 0), _stage("s3", 2)]


# ── group_by_stage ───────────────────────────────────────────────────────────


def test_buckets_follow_stage_position():
    buckets = group_by_stage(STAGES, [])

    assert [b.stage.id for b in buckets] == ["s1", "s2", "s3"]
    assert all(b.count == 0 and b.total_value == 0 for b in buckets)


def test_orphan_and_unstaged_deals_are_dropped():
    deals = [
        _deal("a", value=10, stage_id="s1"),
        _deal("b", value=20, stage_id=None),
        _deal("c", value=30, stage_id="deleted-stage"),
        _deal("d", value=40, stage_id="s3"),
    ]

    buckets = group_by_stage(STAGES, deals)

    placed = [d.id for b in buckets for d in b.deals]
    assert sorted(placed) == ["a", "d"]
    assert sum(b.count for b in buckets) == 2


def test_bucket_keeps_input_order_and_sums_values_nominally():
    deals = [
        _deal("x", value=100, stage_id="s2", currency="USD"),
        _deal("y", value=50.5, stage_id="s2", currency="EUR"),
        _deal("z", value=1, stage_id="s1"),
    ]

    by_id = {b.stage.id: b for b in group_by_stage(STAGES, deals)}

    assert [d.id for d in by_id["s2"].deals] == ["x", "y"]
    assert by_id["s2"].total_value == pytest.approx(150.5)
    assert by_id["s2"].count == 2
    assert by_id["s1"].total_value == 1


@pytest.mark.parametrize("seed", range(5))
def test_each_matching_deal_lands_in_exactly_one_bucket(seed):
    rng = random.Random(seed)
    stage_ids = ["s1", "s2", "s3", None, "orphan"]
    deals = [
        _deal(f"d{i}", value=rng.randint(0, 1000), stage_id=rng.choice(stage_ids))
        for i in range(40)
    ]

    buckets = group_by_stage(STAGES, deals)

    placed = [d.id for b in buckets for d in b.deals]
    assert len(placed) == len(set(placed))
    expected = {d.id for d in deals if d.stage_id in {"s1", "s2", "s3"}}
    assert set(placed) == expected
    assert sum(b.count for b in buckets) <= len(deals)
    for bucket in buckets:
        assert all(d.stage_id == bucket.stage.id for d in bucket.deals)


# ── calculate_deal_metrics ───────────────────────────────────────────────────


def test_metrics_reference_scenario():
    deals = [
        _deal("w", value=100, status="won"),
        _deal("l", value=200, status="lost"),
        _deal("o", value=300, status="open", probability=50),
    ]

    metrics = calculate_deal_metrics(deals)

    assert metrics.open_value == 300
    assert metrics.won_value == 100
    assert metrics.weighted_value == 150
    assert metrics.win_rate == 50
    assert metrics.open_count == 1
    assert metrics.total_count == 3
    assert metrics.total_value == 600


def test_win_rate_is_zero_without_closed_deals():
    assert calculate_deal_metrics([]).win_rate == 0
    only_open = [_deal("a", value=5), _deal("b", value=7, probability=20)]
    metrics = calculate_deal_metrics(only_open)
    assert metrics.win_rate == 0
    assert metrics.open_count == 2


def test_weighted_value_ignores_closed_deals():
    base = [
        _deal("o", value=1000, status="open", probability=25),
        _deal("w", value=500, status="won", probability=10),
        _deal("l", value=700, status="lost", probability=90),
    ]
    changed = [
        base[0],
        _deal("w", value=99999, status="won", probability=100),
        _deal("l", value=1, status="lost", probability=0),
    ]

    assert calculate_deal_metrics(base).weighted_value == 250
    assert calculate_deal_metrics(changed).weighted_value == 250


def test_metrics_are_recomputed_per_call():
    deals = [_deal("a", value=10, status="won")]
    first = calculate_deal_metrics(deals)
    deals.append(_deal("b", value=10, status="lost"))
    second = calculate_deal_metrics(deals)

    assert first.win_rate == 100
    assert second.win_rate == 50
