import time
from dataclasses import dataclass
from datetime import timedelta

from blockforge.limits import BlobParams, Limits, NoExtraLimits


@dataclass(frozen=True)
class CountExt:
    value: int

    def clamp(self, other):
        return CountExt(min(self.value, other.value))


def _blobs(target, maximum, fraction=3338477):
    return BlobParams(
        target_blob_count=target,
        max_blob_count=maximum,
        update_fraction=fraction,
    )


def test_cancun_max_blob_gas_per_block():
    assert _blobs(3, 6).max_blob_gas_per_block() == 786432


def test_max_blob_gas_scales_with_blob_count():
    assert _blobs(6, 12).max_blob_gas_per_block() == 2 * _blobs(3, 6).max_blob_gas_per_block()


def test_from_gas_limit_sets_only_gas():
    limits = Limits.from_gas_limit(30_000_000)
    assert limits.gas_limit == 30_000_000
    assert limits.blob_params is None
    assert limits.max_transactions is None
    assert limits.deadline is None
    assert limits.ext == NoExtraLimits()


def test_builders_return_new_values():
    base = Limits.from_gas_limit(100)
    built = (
        base.with_max_transactions(7)
        .with_deadline(timedelta(seconds=2))
        .with_gas_limit(50)
        .with_blob_params(_blobs(3, 6))
        .with_ext(CountExt(4))
    )
    assert base.gas_limit == 100
    assert base.max_transactions is None
    assert built.gas_limit == 50
    assert built.max_transactions == 7
    assert built.deadline == timedelta(seconds=2)
    assert built.blob_params == _blobs(3, 6)
    assert built.ext == CountExt(4)


def test_deadline_at_future_instant():
    limits = Limits.from_gas_limit(1).with_deadline_at(time.monotonic() + 5)
    assert timedelta(seconds=4) < limits.deadline <= timedelta(seconds=5)


def test_deadline_at_past_instant_saturates_to_zero():
    limits = Limits.from_gas_limit(1).with_deadline_at(time.monotonic() - 5)
    assert limits.deadline == timedelta(0)


def test_clamp_takes_minimum_of_present_values():
    a = Limits.from_gas_limit(100, CountExt(9)).with_max_transactions(10).with_deadline(
        timedelta(seconds=3)
    )
    b = Limits.from_gas_limit(80, CountExt(2)).with_max_transactions(20).with_deadline(
        timedelta(seconds=1)
    )
    clamped = a.clamp(b)
    assert clamped.gas_limit == 80
    assert clamped.max_transactions == 10
    assert clamped.deadline == timedelta(seconds=1)
    assert clamped.ext == CountExt(2)


def test_clamp_absent_option_wins():
    a = Limits.from_gas_limit(100).with_max_transactions(10)
    b = Limits.from_gas_limit(100).with_deadline(timedelta(seconds=1))
    clamped = a.clamp(b)
    assert clamped.max_transactions is None
    assert clamped.deadline is None


def test_clamp_blob_params_elementwise():
    a = Limits.from_gas_limit(1).with_blob_params(_blobs(3, 9, 100))
    b = Limits.from_gas_limit(1).with_blob_params(_blobs(6, 6, 50))
    clamped = a.clamp(b).blob_params
    assert clamped.target_blob_count == 3
    assert clamped.max_blob_count == 6
    assert clamped.update_fraction == 50


def test_clamp_blob_params_keeps_the_one_present():
    params = _blobs(3, 6)
    with_blobs = Limits.from_gas_limit(1).with_blob_params(params)
    without = Limits.from_gas_limit(1)
    assert with_blobs.clamp(without).blob_params == params
    assert without.clamp(with_blobs).blob_params == params


def test_clamp_is_symmetric():
    a = Limits.from_gas_limit(10, CountExt(5)).with_max_transactions(3)
    b = Limits.from_gas_limit(20, CountExt(1)).with_max_transactions(8)
    assert a.clamp(b) == b.clamp(a)