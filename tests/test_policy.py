import time

import pytest

from ristretto.metrics import Metrics
from ristretto.policy import LFU_SAMPLE, DefaultPolicy, SampledLFU, TinyLFU


@pytest.fixture
def make_policy():
    created = []

    def factory(num_counters=100, max_cost=10):
        p = DefaultPolicy(num_counters, max_cost)
        created.append(p)
        return p

    yield factory
    for p in created:
        p.close()


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_policy_metrics(make_policy):
    p = make_policy()
    metrics = Metrics()
    p.collect_metrics(metrics)
    assert p.metrics is metrics
    assert p.evict.metrics is metrics


def test_policy_process_items(make_policy):
    p = make_policy()
    assert p.push([1, 2, 2])
    assert _wait_for(lambda: p.admit.estimate(2) == 2)
    assert p.admit.estimate(1) == 1

    p.close()
    assert p.push([3, 3, 3]) is False
    time.sleep(0.01)
    assert p.admit.estimate(3) == 0


def test_policy_push(make_policy):
    p = make_policy()
    assert p.push([]) is True
    keep_count = sum(1 for _ in range(10) if p.push([1, 2, 3, 4, 5]))
    assert keep_count > 0


def test_policy_push_metrics(make_policy):
    p = make_policy()
    metrics = Metrics()
    p.collect_metrics(metrics)
    results = [p.push([1, 2, 3, 4, 5]) for _ in range(10)]
    kept = sum(results)
    assert metrics.gets_kept() == kept * 5
    assert metrics.gets_dropped() == (10 - kept) * 5


def test_policy_add(make_policy):
    p = make_policy(1000, 100)
    assert p.add(1, 101) == ([], False)

    p.evict.add(1, 1)
    p.admit.increment(1)
    p.admit.increment(2)
    p.admit.increment(3)

    assert p.add(1, 1) == ([], False)
    assert p.add(2, 20) == ([], True)

    victims, added = p.add(3, 90)
    assert added is True
    assert sorted(v.key for v in victims) == [1, 2]
    assert {v.key: v.cost for v in victims} == {1: 1, 2: 20}

    victims, added = p.add(4, 20)
    assert added is False
    assert victims == []
    assert p.has(3)
    assert not p.has(4)


def test_policy_add_rejection_counted(make_policy):
    p = make_policy(1000, 10)
    metrics = Metrics()
    p.collect_metrics(metrics)
    p.admit.push([1, 1, 1])
    assert p.add(1, 10) == ([], True)
    victims, added = p.add(2, 5)
    assert (victims, added) == ([], False)
    assert metrics.sets_rejected() == 1
    assert metrics.cost_added() == 10


def test_policy_has(make_policy):
    p = make_policy()
    p.add(1, 1)
    assert p.has(1)
    assert not p.has(2)


def test_policy_delete(make_policy):
    p = make_policy()
    p.add(1, 1)
    p.delete(1)
    p.delete(2)
    assert not p.has(1)
    assert not p.has(2)


def test_policy_capacity(make_policy):
    p = make_policy()
    p.add(1, 1)
    assert p.capacity() == 9


def test_policy_update(make_policy):
    p = make_policy()
    p.add(1, 1)
    p.update(1, 2)
    assert p.evict.key_costs[1] == 2


def test_policy_cost(make_policy):
    p = make_policy()
    p.add(1, 2)
    assert p.cost(1) == 2
    assert p.cost(2) == -1


def test_policy_clear(make_policy):
    p = make_policy()
    p.add(1, 1)
    p.add(2, 2)
    p.add(3, 3)
    p.clear()
    assert p.capacity() == 10
    assert not p.has(1)
    assert not p.has(2)
    assert not p.has(3)


def test_push_after_close(make_policy):
    p = make_policy()
    p.close()
    assert p.push([1, 2]) is False
    assert p.is_closed


def test_close_twice(make_policy):
    p = make_policy()
    p.close()
    p.close()
    assert p.is_closed


def test_add_after_close(make_policy):
    p = make_policy()
    p.close()
    assert p.add(1, 1) == ([], True)


def test_max_cost(make_policy):
    p = make_policy()
    assert p.max_cost() == 10
    p.update_max_cost(1000)
    assert p.max_cost() == 1000
    assert p.add(1, 500) == ([], True)


def test_sampled_lfu_add():
    e = SampledLFU(4)
    e.add(1, 1)
    e.add(2, 2)
    e.add(3, 1)
    assert e.used == 4
    assert e.key_costs[2] == 2


def test_sampled_lfu_delete():
    e = SampledLFU(4)
    e.add(1, 1)
    e.add(2, 2)
    e.delete(2)
    assert e.used == 1
    assert 2 not in e.key_costs
    e.delete(4)
    assert e.used == 1


def test_sampled_lfu_update():
    e = SampledLFU(4)
    e.add(1, 1)
    assert e.update_if_has(1, 2)
    assert e.used == 2
    assert not e.update_if_has(2, 2)


def test_sampled_lfu_update_metrics():
    e = SampledLFU(100)
    metrics = Metrics()
    e.metrics = metrics
    metrics.add(metrics_type_cost_add(), 1, 5)
    e.add(1, 5)
    e.update_if_has(1, 3)
    assert metrics.cost_added() == 3
    assert metrics.keys_updated() == 1
    e.update_if_has(1, 7)
    assert metrics.cost_added() == 7


def metrics_type_cost_add():
    from ristretto.metrics import MetricType

    return MetricType.COST_ADD


def test_sampled_lfu_clear():
    e = SampledLFU(4)
    e.add(1, 1)
    e.add(2, 2)
    e.add(3, 1)
    e.clear()
    assert len(e.key_costs) == 0
    assert e.used == 0


def test_sampled_lfu_room():
    e = SampledLFU(16)
    e.add(1, 1)
    e.add(2, 2)
    e.add(3, 3)
    assert e.room_left(4) == 6


def test_sampled_lfu_sample():
    e = SampledLFU(16)
    e.add(4, 4)
    e.add(5, 5)
    sample = e.fill_sample([(1, 1), (2, 2), (3, 3)])
    k = sample[-1][0]
    assert len(sample) == LFU_SAMPLE
    assert k not in (1, 2, 3)
    assert len(e.fill_sample(sample)) == len(sample)
    e.delete(5)
    sample = e.fill_sample(sample[:-2])
    assert len(sample) == 4


def test_tiny_lfu_increment():
    a = TinyLFU(4)
    a.increment(1)
    a.increment(1)
    a.increment(1)
    assert a.door.has(1)
    assert a.freq.estimate(1) == 2

    a.increment(1)
    assert not a.door.has(1)
    assert a.freq.estimate(1) == 1


def test_tiny_lfu_estimate():
    a = TinyLFU(8)
    a.increment(1)
    a.increment(1)
    a.increment(1)
    assert a.estimate(1) == 3
    assert a.estimate(2) == 0


def test_tiny_lfu_push():
    a = TinyLFU(16)
    a.push([1, 2, 2, 3, 3, 3])
    assert a.estimate(1) == 1
    assert a.estimate(2) == 2
    assert a.estimate(3) == 3
    assert a.incrs == 6


def test_tiny_lfu_clear():
    a = TinyLFU(16)
    a.push([1, 3, 3, 3])
    a.clear()
    assert a.incrs == 0
    assert a.estimate(3) == 0