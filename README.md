# ristretto

A fixed-size, thread-safe, in-memory cache that aims at both throughput and
hit ratio. New entries are admitted by a TinyLFU policy (a count-min sketch
behind a Bloom-filter doorkeeper), and room is made by evicting from a
sample of resident keys, preferring the least frequently used.

The package is pure Python and has no dependencies outside the standard
library.

## Installation

```
pip install .
```

## Usage

```python
from ristretto.cache import Cache, Config

config = Config(
    num_counters=10_000,   # access-frequency counters (about 10x the expected items)
    max_cost=1_000,        # capacity, in whatever unit you give costs in
    buffer_items=64,       # size of the access batches handed to the policy
    metrics=True,
)

with Cache(config) as cache:
    cache.set("answer", 42, 1)
    cache.wait()                      # let queued sets be applied
    value, found = cache.get("answer")

    cache.set("session", "data", 1, ttl=30.0)   # expires after 30 seconds
    cache.wait()
    remaining, found = cache.get_ttl("session")

    cache.delete("answer")
    print(cache.metrics)
```

Sets are queued and applied by a background thread, so a `set` that returns
`True` may still be refused by the admission policy. `set` returns `False`
when the queue is full (unless the key was already present and has been
updated in place), when the cache is closed, or when `ttl` is negative.
`ttl` is given in seconds or as a `datetime.timedelta`; `0` means the item
never expires. Call `wait()` when earlier sets must have been applied.

`get` returns a `(value, found)` pair, and `get_ttl` a `(seconds_left,
found)` pair where `0` seconds with `found` true means no expiry.
`clear()` empties the cache and resets its counters and metrics; `close()`
(also called when leaving a `with` block) empties the cache and stops its
background threads. `max_cost()` and `update_max_cost()` read and change the
capacity.

### Configuration

`Config` also accepts:

- `on_evict(item)` — called with an `ristretto.store.Item` for each eviction,
  including items removed by `clear()` and items whose TTL ran out
- `on_reject(item)` — called when the admission policy refuses an item
- `on_exit(value)` — called whenever a non-`None` value leaves the cache:
  eviction, rejection, deletion or replacement
- `key_to_hash(key)` — returns a `(key_hash, conflict_hash)` pair of 64-bit
  integers; by default integers hash to themselves (with no conflict hash)
  and `str` and `bytes` keys are hashed with BLAKE2b; other key types raise
  `TypeError` unless you supply this function
- `cost(value)` — used whenever an item is set with a cost of `0`
- `ignore_internal_cost` — by default every item is charged an extra
  `ristretto.cache.ITEM_SIZE` for its internal storage; set this to `True`
  when costs are not measured in bytes
- `bucket_duration_secs` — width of the expiry buckets (default 5); expired
  items are swept every half bucket
- `set_buf_size` — length of the set queue (default 32768)

### Metrics

With `metrics=True`, `cache.metrics` is a `ristretto.metrics.Metrics` with
`hits()`, `misses()`, `ratio()`, `keys_added()`, `keys_updated()`,
`keys_evicted()`, `cost_added()`, `cost_evicted()`, `sets_dropped()`,
`sets_rejected()`, `gets_dropped()` and `gets_kept()`. Its string form lists
every counter together with the total number of gets and the hit ratio.

### Building blocks

The parts the cache is made of can be used on their own:

- `ristretto.bloom.Bloom` — Bloom filter over 64-bit hashes, with
  `to_json()` and `Bloom.from_json()`
- `ristretto.sketch.CountMinSketch` — count-min sketch with 4-bit counters,
  and `next_power_of_two()`
- `ristretto.ring.RingBuffer` — lossy buffer that hands keys to a consumer
  in batches
- `ristretto.policy.DefaultPolicy`, `TinyLFU`, `SampledLFU` — admission and
  eviction
- `ristretto.store.ShardedMap` — sharded key/value store with expiry buckets
- `ristretto.ttl.ExpirationMap` — keys grouped by expiry bucket
- `ristretto.sim` — key-stream simulators for trying out workloads:
  `zipfian()`, `uniform()`, `reader()` with the `parse_lirs()` and
  `parse_arc()` trace-line parsers, and `collection()` /
  `string_collection()`; a reader raises `SimulatorDone` at the end of its
  file and `BadLineError` on a malformed ARC line

## What it does not do

This is a library only: there is no command-line program. The cache lives in
process memory and nothing is written to disk, and it does not track how long
evicted keys lived.

## Running the tests

```
pip install ".[test]"
pytest
```