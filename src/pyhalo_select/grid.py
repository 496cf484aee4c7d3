import numpy as np

from .errors import PreconditionError


def wrap_coordinates(coords, boxsize):
    """Wrap coordinates into [0, boxsize)."""
    coords = np.mod(coords, boxsize)

    # np.mod can round tiny negative values up to boxsize itself.
    coords[coords >= boxsize] = 0.0
    return coords


def periodic_offsets(dx, boxsize):
    """Minimal-image separations of dx in a periodic box."""
    return np.mod(dx + 0.5 * boxsize, boxsize) - 0.5 * boxsize


def periodic_distance2(dx, dy, dz, boxsize):
    """
    Squared minimal-image distance for separations (dx, dy, dz).

    Parameters
    ----------
    dx/dy/dz : ndarray
        Raw coordinate separations
    boxsize : float
        Side length of the periodic box

    Returns
    -------
    - : ndarray
        Squared periodic distances
    """
    dx = periodic_offsets(np.asarray(dx, dtype=np.float64), boxsize)
    dy = periodic_offsets(np.asarray(dy, dtype=np.float64), boxsize)
    dz = periodic_offsets(np.asarray(dz, dtype=np.float64), boxsize)
    return dx * dx + dy * dy + dz * dz


class Grid:
    def __init__(self, cells_per_side, domain_width, point_count):
        """
        Uniform cell grid over a periodic cube, used to find the points near
        a given point without comparing every pair.

        Cells are indexed as k + n * (j + n * i) for a cell at (i, j, k),
        where n is the number of cells per side. Point indices are stored per
        cell in a flat array (`cell_index`), with the slice of cell c running
        from cell_start[c] to cell_start[c + 1].

        Parameters
        ----------
        cells_per_side : int
            Number of cells along each axis
        domain_width : float
            Side length of the periodic domain
        point_count : int
            Number of points that will be inserted
        """

        if cells_per_side < 1:
            raise PreconditionError(
                f"cells_per_side must be at least 1, got {cells_per_side}"
            )
        if not domain_width > 0:
            raise PreconditionError(
                f"domain_width must be positive, got {domain_width}"
            )
        if point_count < 0:
            raise PreconditionError(
                f"point_count must be non-negative, got {point_count}"
            )

        self.cells_per_side = int(cells_per_side)
        self.domain_width = float(domain_width)
        self.cell_width = self.domain_width / self.cells_per_side
        self.point_count = int(point_count)

        # Empty buckets until insert() is called.
        self.cell_start = np.zeros(self.num_cells + 1, dtype=np.int64)
        self.cell_index = np.zeros(0, dtype=np.int64)
        self.point_cells = np.zeros((0, 3), dtype=np.int64)

    @property
    def num_cells(self):
        return self.cells_per_side**3

    def insert(self, xs, ys, zs):
        """
        Bucket points into their grid cells.

        Coordinates are wrapped into [0, domain_width) first, so points may
        lie anywhere on the torus.

        Parameters
        ----------
        xs/ys/zs : ndarray
            Point coordinates, each of length point_count
        """

        xs, ys, zs = np.asarray(xs), np.asarray(ys), np.asarray(zs)
        if not (len(xs) == len(ys) == len(zs) == self.point_count):
            raise PreconditionError(
                "Coordinate arrays have lengths %i, %i, %i but the grid was "
                "built for %i points" % (len(xs), len(ys), len(zs), self.point_count)
            )

        n = self.cells_per_side
        coords = np.column_stack([xs, ys, zs]).astype(np.float64)
        coords = wrap_coordinates(coords, self.domain_width)

        cells = np.mod(np.floor(coords / self.cell_width).astype(np.int64), n)
        flat = cells[:, 2] + n * (cells[:, 1] + n * cells[:, 0])

        # Stable sort keeps point indices ascending within a cell.
        self.cell_index = np.argsort(flat, kind="stable").astype(np.int64)
        counts = np.bincount(flat, minlength=self.num_cells)
        self.cell_start = np.concatenate([[0], np.cumsum(counts)]).astype(np.int64)
        self.point_cells = cells

    def cell_of(self, point_index):
        """(i, j, k) cell holding an inserted point."""
        if not 0 <= point_index < len(self.point_cells):
            raise PreconditionError(
                f"Point {point_index} is not in the grid "
                f"({len(self.point_cells)} points inserted)"
            )
        return tuple(int(c) for c in self.point_cells[point_index])

    def cell_members(self, cell):
        """Indices of the points in flat cell `cell`."""
        return self.cell_index[self.cell_start[cell] : self.cell_start[cell + 1]]

    def _ring(self, centre, reach):
        # Once the ring wraps onto itself every cell on the axis is searched,
        # and each only once.
        n = self.cells_per_side
        if 2 * reach + 1 >= n:
            return np.arange(n, dtype=np.int64)
        return np.mod(np.arange(centre - reach, centre + reach + 1), n)

    def candidates_within_radius(self, point_index, radius):
        """
        Every point that could lie within `radius` of a given point.

        Searches the point's own cell and the ring of cells extending
        ceil(radius / cell_width) cells in each direction, wrapping around the
        periodic boundary. No point within `radius` (minimal-image distance)
        is ever missed; points further away are returned too, and the caller
        must filter them on exact distance. The query point itself is
        included.

        Parameters
        ----------
        point_index : int
            Index of the point to search around
        radius : float
            Search radius

        Returns
        -------
        candidates : ndarray
            Indices of candidate points
        """

        if radius < 0:
            raise PreconditionError(f"Search radius must be >= 0, got {radius}")

        i, j, k = self.cell_of(point_index)
        reach = int(np.ceil(radius / self.cell_width))

        n = self.cells_per_side
        ii = self._ring(i, reach)
        jj = self._ring(j, reach)
        kk = self._ring(k, reach)
        cells = (
            kk[None, None, :] + n * (jj[None, :, None] + n * ii[:, None, None])
        ).ravel()

        lefts = self.cell_start[cells]
        rights = self.cell_start[cells + 1]
        mask = rights > lefts

        return np.concatenate(
            [self.cell_index[l:r] for l, r in zip(lefts[mask], rights[mask])]
            + [np.zeros(0, dtype=np.int64)]
        )
