import math

import numpy as np
import pytest

from mchitmatch.physics.deposits import Deposit
from mchitmatch.physics.particles import TruthParticle
from mchitmatch.matching.aggregate import aggregate_deposits
from mchitmatch.matching.relations import HitParticleAssns, emit_matches
from mchitmatch.matching.resolver import LinearTrackIdResolver


def _emit(rows, track_ids, hit_index=0):
    deps = [Deposit(track_id=t, energy=e, num_electrons=n) for (t, e, n) in rows]
    resolver = LinearTrackIdResolver([TruthParticle(track_id=t) for t in track_ids])
    assns = HitParticleAssns()
    n = emit_matches(hit_index, aggregate_deposits(deps), resolver, assns)
    assert n == len(assns)
    return assns


def test_reference_hit_relations():
    assns = _emit([(5, 3.0, 10.0), (7, 1.0, 50.0), (5, 4.0, 5.0)], [5, 7], hit_index=3)
    by_tid = {m.track_id: m for m in assns}
    assert set(by_tid) == {5, 7}

    m5, m7 = by_tid[5], by_tid[7]
    assert m5.hit_index == 3 and m5.particle_index == 0
    assert m7.particle_index == 1
    assert m5.data.energy_fraction == pytest.approx(0.875)
    assert m5.data.electron_fraction == pytest.approx(15.0 / 65.0)
    assert m5.data.is_max_energy and not m5.data.is_max_electrons
    assert m5.data.energy == 7.0 and m5.data.electrons == 15.0
    assert m7.data.energy_fraction == pytest.approx(0.125)
    assert m7.data.electron_fraction == pytest.approx(50.0 / 65.0)
    assert m7.data.is_max_electrons and not m7.data.is_max_energy


def test_unresolved_ids_are_dropped():
    assns = _emit([(5, 3.0, 10.0), (-3, 1.0, 5.0)], [5])
    assert [m.track_id for m in assns] == [5]
    # fractions still use the full hit totals
    assert assns.matches[0].data.energy_fraction == pytest.approx(0.75)


def test_unresolved_max_holder_leaves_no_max_flag():
    assns = _emit([(5, 1.0, 1.0), (9, 4.0, 10.0)], [5])
    assert len(assns) == 1
    assert not assns.matches[0].data.is_max_energy
    assert not assns.matches[0].data.is_max_electrons


def test_empty_aggregation_emits_nothing():
    assert len(_emit([], [1, 2, 3])) == 0


def test_zero_totals_give_non_finite_fractions():
    assns = _emit([(1, 0.0, 0.0), (2, 0.0, 0.0)], [1, 2])
    assert len(assns) == 2
    for m in assns:
        assert math.isnan(m.data.energy_fraction)
        assert math.isnan(m.data.electron_fraction)


def test_to_arrays_columns():
    assns = _emit([(5, 3.0, 10.0), (7, 1.0, 50.0)], [5, 7], hit_index=2)
    cols = assns.to_arrays()
    assert cols["hit_index"].tolist() == [2, 2]
    assert cols["is_max_energy"].dtype == bool
    np.testing.assert_allclose(cols["energy_fraction"].sum(), 1.0)
    assert len(assns.for_hit(2)) == 2 and assns.for_hit(0) == []
