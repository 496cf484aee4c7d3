import numpy as np

from .errors import PreconditionError
from .grid import periodic_distance2


def size_order(rs, ids):
    """
    Position of each halo when ordered by radius descending, ties broken by
    ascending halo ID.

    Parameters
    ----------
    rs : ndarray
        Halo radii
    ids : ndarray
        Halo IDs

    Returns
    -------
    rank : ndarray
        rank[i] < rank[j] means halo i is the larger of the pair
    """
    order = np.lexsort((ids, -rs))
    rank = np.empty(len(rs), dtype=np.int64)
    rank[order] = np.arange(len(rs))
    return rank


class SubhaloFinder:
    def __init__(self, grid):
        """
        Flags halos whose centres lie inside the exclusion sphere of a larger
        halo.

        Parameters
        ----------
        grid : Grid
            Grid with every halo of the snapshot already inserted
        """
        self.grid = grid
        self._host_counts = None
        self._hosts = None

    def find_subhalos(self, xs, ys, zs, rs, exclusion_radius_mult, ids=None):
        """
        Count the hosts of every halo.

        Each halo h is queried with the sphere of radius
        rs[h] * exclusion_radius_mult around its own centre. Any halo c in
        that sphere (strictly closer than the radius, minimal-image distance)
        that is smaller than h, i.e. later in `size_order`, has h added to its
        hosts. Halos of equal radius are ordered by ID, so of two equal halos
        only the one with the larger ID can be a subhalo.

        Parameters
        ----------
        xs/ys/zs : ndarray
            Halo centres, in the order they were inserted into the grid
        rs : ndarray
            Halo radii
        exclusion_radius_mult : float
            Multiplier applied to the radii
        ids : ndarray, optional
            Halo IDs used for the tie-break (defaults to the array index)
        """

        xs, ys, zs, rs = (np.asarray(a, dtype=np.float64) for a in (xs, ys, zs, rs))
        n = len(rs)
        if ids is None:
            ids = np.arange(n)
        ids = np.asarray(ids)

        if not (len(xs) == len(ys) == len(zs) == len(ids) == n):
            raise PreconditionError("Halo arrays have mismatched lengths")
        if n != self.grid.point_count:
            raise PreconditionError(
                f"Grid holds {self.grid.point_count} points but {n} halos were given"
            )
        if n > 0 and not np.all(rs > 0):
            raise PreconditionError("All halo radii must be positive")
        if not exclusion_radius_mult > 0:
            raise PreconditionError(
                f"exclusion_radius_mult must be positive, got {exclusion_radius_mult}"
            )

        rank = size_order(rs, ids)
        boxsize = self.grid.domain_width

        host_counts = np.zeros(n, dtype=np.int64)
        hosts = [[] for _ in range(n)]

        for h in range(n):
            r_max = rs[h] * exclusion_radius_mult
            cands = self.grid.candidates_within_radius(h, r_max)

            # Only smaller halos can be subhalos of h (this also drops h).
            cands = cands[rank[cands] > rank[h]]
            if len(cands) == 0:
                continue

            d2 = periodic_distance2(
                xs[cands] - xs[h], ys[cands] - ys[h], zs[cands] - zs[h], boxsize
            )
            for c in cands[d2 < r_max * r_max]:
                host_counts[c] += 1
                hosts[c].append(h)

        self._host_counts = host_counts
        self._hosts = [np.array(sorted(h), dtype=np.int64) for h in hosts]

    def _check_run(self):
        if self._host_counts is None:
            raise PreconditionError("find_subhalos() has not been run")

    def host_count(self, i):
        """Number of larger halos whose exclusion sphere holds halo i."""
        self._check_run()
        return int(self._host_counts[i])

    def host_counts(self):
        self._check_run()
        return self._host_counts.copy()

    def hosts(self, i):
        """Indices of the halos hosting halo i."""
        self._check_run()
        return self._hosts[i]

    def is_subhalo(self):
        self._check_run()
        return self._host_counts > 0
