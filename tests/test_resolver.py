import pytest

from mchitmatch.physics.particles import TruthParticle
from mchitmatch.matching.resolver import (
    LinearTrackIdResolver,
    TableTrackIdResolver,
    make_resolver,
)


def _particles(*track_ids):
    return [TruthParticle(track_id=t) for t in track_ids]


def test_linear_resolves_index_and_caches():
    r = LinearTrackIdResolver(_particles(40, 3, 17))
    assert r.resolve(17) == 2
    assert r.resolve(40) == 0
    assert r.resolve(17) == 2
    assert r.n_lookups == 3
    assert r.n_scans == 2


def test_linear_caches_misses():
    r = LinearTrackIdResolver(_particles(1, 2, 3))
    for _ in range(5):
        assert r.resolve(99) is None
    assert r.n_scans == 1
    assert r.n_unresolved == 1


def test_duplicate_track_id_first_wins():
    parts = _particles(8, 9, 8)
    assert LinearTrackIdResolver(parts).resolve(8) == 0
    assert TableTrackIdResolver(parts).resolve(8) == 0


def test_table_matches_linear():
    parts = _particles(5, 11, 2, 7, 100)
    lin = LinearTrackIdResolver(parts)
    tab = TableTrackIdResolver(parts)
    for tid in (5, 11, 2, 7, 100, 0, -5, 42):
        assert lin.resolve(tid) == tab.resolve(tid)
    assert tab.n_unresolved == lin.n_unresolved == 3


def test_empty_particle_list():
    assert LinearTrackIdResolver([]).resolve(1) is None
    assert TableTrackIdResolver([]).resolve(1) is None


def test_make_resolver():
    parts = _particles(1)
    assert make_resolver("linear", parts).name == "linear"
    assert make_resolver("TABLE", parts).name == "table"
    with pytest.raises(ValueError):
        make_resolver("hash", parts)
