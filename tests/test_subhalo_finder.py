import numpy as np
import pytest

from pyhalo_select import Grid, PreconditionError, SubhaloFinder
from pyhalo_select.grid import periodic_distance2

BOXSIZE = 100.0


def _find(xs, ys, zs, rs, mult=1.0, ids=None, cells_per_side=10):
    g = Grid(cells_per_side, BOXSIZE, len(xs))
    g.insert(xs, ys, zs)
    sf = SubhaloFinder(g)
    sf.find_subhalos(xs, ys, zs, rs, mult, ids=ids)
    return sf


def test_directionality():
    """A small halo inside a big one is the subhalo, never the reverse."""

    # Halo A (radius 10) and halo B (radius 2), 5 apart.
    sf = _find([50.0, 55.0], [50.0, 50.0], [50.0, 50.0], [10.0, 2.0])
    assert sf.host_count(0) == 0
    assert sf.host_count(1) >= 1
    assert list(sf.hosts(1)) == [0]

    # Same halos, inserted the other way round.
    sf = _find([55.0, 50.0], [50.0, 50.0], [50.0, 50.0], [2.0, 10.0])
    assert sf.host_count(1) == 0
    assert sf.host_count(0) >= 1


def test_outside_exclusion_radius():
    xs, ys, zs, rs = [50.0, 61.0], [50.0, 50.0], [50.0, 50.0], [10.0, 2.0]

    sf = _find(xs, ys, zs, rs, mult=1.0)
    assert not np.any(sf.is_subhalo())

    # A larger multiplier pulls the small halo in.
    sf = _find(xs, ys, zs, rs, mult=1.5)
    assert list(sf.is_subhalo()) == [False, True]


def test_periodic_overlap():
    sf = _find([1.0, 98.0], [50.0, 50.0], [50.0, 50.0], [5.0, 1.0])
    assert list(sf.is_subhalo()) == [False, True]


def test_equal_radius_tie_break():
    """Of two equal halos, the one with the larger ID is the subhalo."""

    xs, ys, zs, rs = [50.0, 52.0], [50.0, 50.0], [50.0, 50.0], [5.0, 5.0]

    sf = _find(xs, ys, zs, rs, ids=[7, 3])
    assert list(sf.host_counts()) == [1, 0]

    sf = _find(xs, ys, zs, rs, ids=[3, 7])
    assert list(sf.host_counts()) == [0, 1]


def test_multiple_hosts():
    xs = [50.0, 53.0, 51.0]
    ys = [50.0, 50.0, 50.0]
    zs = [50.0, 50.0, 50.0]
    sf = _find(xs, ys, zs, [10.0, 8.0, 1.0])

    assert list(sf.host_counts()) == [0, 1, 2]
    assert list(sf.hosts(2)) == [0, 1]


@pytest.mark.parametrize("cells_per_side", [1, 4, 25])
def test_matches_brute_force(cells_per_side):
    rng = np.random.default_rng(1)
    n = 200
    xs, ys, zs = rng.uniform(0, BOXSIZE, size=(3, n))
    rs = rng.uniform(0.5, 8.0, size=n)
    ids = rng.permutation(n) + 1000
    mult = 1.3

    sf = _find(xs, ys, zs, rs, mult=mult, ids=ids, cells_per_side=cells_per_side)

    expected = np.zeros(n, dtype=int)
    for h in range(n):
        d2 = periodic_distance2(xs - xs[h], ys - ys[h], zs - zs[h], BOXSIZE)
        for c in range(n):
            if c == h or d2[c] >= (rs[h] * mult) ** 2:
                continue
            if rs[c] < rs[h] or (rs[c] == rs[h] and ids[c] > ids[h]):
                expected[c] += 1

    assert np.array_equal(sf.host_counts(), expected)


def test_preconditions():
    xs, ys, zs = [1.0, 2.0], [1.0, 2.0], [1.0, 2.0]

    with pytest.raises(PreconditionError):
        _find(xs, ys, zs, [1.0, 0.0])
    with pytest.raises(PreconditionError):
        _find(xs, ys, zs, [1.0, -2.0])
    with pytest.raises(PreconditionError):
        _find(xs, ys, zs, [1.0, 1.0], mult=0.0)

    g = Grid(5, BOXSIZE, 2)
    g.insert(xs, ys, zs)
    sf = SubhaloFinder(g)
    with pytest.raises(PreconditionError):
        sf.find_subhalos(xs, ys, zs, [1.0], 1.0)
    with pytest.raises(PreconditionError):
        sf.find_subhalos(xs + [3.0], ys + [3.0], zs + [3.0], [1.0, 1.0, 1.0], 1.0)
    with pytest.raises(PreconditionError):
        sf.host_count(0)
