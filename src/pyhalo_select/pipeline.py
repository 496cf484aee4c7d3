import logging
import time

import numpy as np

from .config import DEFAULT_FINDER_CELLS
from .errors import (
    ConfigError,
    PreconditionError,
    UnimplementedStrategyError,
    UnknownIDError,
)
from .grid import Grid
from .resolve import get_ids, resolve_ids
from .subhalo_finder import SubhaloFinder

logger = logging.getLogger(__name__)

COLUMN_NAMES = ["ID", "Snapshot"]


def group_by_snapshot(ids, snaps):
    """
    Indices of the selections belonging to each snapshot.

    Parameters
    ----------
    ids : array
        Halo IDs
    snaps : array
        Snapshot of each ID

    Returns
    -------
    groups : dict
        snapshot -> ndarray of indices into ids, ascending
    """
    ids, snaps = np.asarray(ids), np.asarray(snaps)
    if len(ids) != len(snaps):
        raise PreconditionError(
            f"{len(ids)} IDs but {len(snaps)} snapshots were given"
        )

    groups = {}
    for snap in np.unique(snaps):
        groups[int(snap)] = np.flatnonzero(snaps == snap)
    return groups


def find_overlap_subhalos(
    ids, snaps, cache, exclusion_radius_mult, finder_cells=DEFAULT_FINDER_CELLS
):
    """
    Flag the selected halos whose centres lie inside a larger halo.

    The search runs over each snapshot's whole catalog, since the host of a
    selected halo need not be selected itself.

    Parameters
    ----------
    ids : array
        Selected halo IDs
    snaps : array
        Snapshot of each selected halo
    cache : CatalogCache
    exclusion_radius_mult : float
        Multiplier applied to the halo radii
    finder_cells : int
        Cells per side of the search grid

    Returns
    -------
    is_sub : ndarray
        True for every selection that is a subhalo
    """

    ids = np.asarray(ids, dtype=np.int64)
    is_sub = np.zeros(len(ids), dtype=bool)

    for snap, idxs in group_by_snapshot(ids, snaps).items():
        header = cache.headers(snap)
        rids = cache.sorted_ids(snap, -1)
        halos = cache.halo_arrays(snap, rids)

        logger.info(
            f"Finding overlapping halos among {len(rids)} halos of snapshot {snap}"
        )
        g = Grid(finder_cells, header["domain_width"], len(rids))
        g.insert(halos["x"], halos["y"], halos["z"])
        sf = SubhaloFinder(g)
        sf.find_subhalos(
            halos["x"],
            halos["y"],
            halos["z"],
            halos["radius"],
            exclusion_radius_mult,
            ids=halos["id"],
        )

        # rids is in the same order as the finder's arrays.
        rows = _match_ids(rids, ids[idxs], snap)
        is_sub[idxs] = sf.is_subhalo()[rows]

    return is_sub


def _match_ids(catalog_ids, ids, snap):
    """Position of each ID in catalog_ids, by exact ID match."""
    id_to_row = {int(cid): row for row, cid in enumerate(catalog_ids)}
    rows = np.empty(len(ids), dtype=np.int64)
    for i, hid in enumerate(ids):
        row = id_to_row.get(int(hid))
        if row is None:
            raise UnknownIDError(int(hid), snap)
        rows[i] = row
    return rows


def exclusion_flags(
    ids,
    snaps,
    cache,
    strategy,
    exclusion_radius_mult=1.0,
    finder_cells=DEFAULT_FINDER_CELLS,
):
    """
    Which selections to drop under an exclusion strategy.

    Raises
    ------
    UnimplementedStrategyError
        For the reserved "subhalo" strategy
    ConfigError
        For an unknown strategy
    """
    if strategy == "none":
        return np.zeros(len(ids), dtype=bool)
    elif strategy == "subhalo":
        raise UnimplementedStrategyError(strategy)
    elif strategy == "overlap":
        return find_overlap_subhalos(
            ids, snaps, cache, exclusion_radius_mult, finder_cells=finder_cells
        )
    raise ConfigError(
        f"The 'ExclusionStrategy' variable is set to '{strategy}', which I "
        "don't recognize."
    )


def expand_multiplicity(rows, mult):
    """Repeat each row `mult` times, keeping the copies of a row together."""
    if mult < 1:
        raise PreconditionError(f"mult must be at least 1, got {mult}")
    return [row for row in rows for _ in range(mult)]


def format_cols(int_cols):
    """
    One line per row, with each column right-aligned to its widest entry.

    Parameters
    ----------
    int_cols : list
        Integer columns, all the same length

    Returns
    -------
    lines : list
        Formatted rows
    """
    if len(int_cols) == 0:
        return []
    n = len(int_cols[0])
    if any(len(col) != n for col in int_cols):
        raise PreconditionError("Columns have different lengths")

    strs = [[str(int(v)) for v in col] for col in int_cols]
    widths = [max((len(s) for s in col), default=0) for col in strs]
    return [
        " ".join(col[i].rjust(w) for col, w in zip(strs, widths)) for i in range(n)
    ]


def comment_string(names, widths):
    """
    Header line naming each column and the fields it spans.

    For example, names ["ID", "Pos"] with widths [1, 3] give
    "# Column contents: ID(0) Pos(1-3)".
    """
    if len(names) != len(widths):
        raise PreconditionError("Need one width per column name")

    tokens = []
    start = 0
    for name, width in zip(names, widths):
        if width == 1:
            tokens.append(f"{name}({start})")
        else:
            tokens.append(f"{name}({start}-{start + width - 1})")
        start += width
    return "# Column contents: " + " ".join(tokens)


class SelectionPipeline:
    def __init__(
        self,
        id_config,
        global_config,
        cache,
        verbose=False,
        log_level=logging.INFO,
    ):
        """
        Turns an id.config selection into output lines of (ID, snapshot).

        Parameters
        ----------
        id_config : IDConfig
        global_config : GlobalConfig
        cache : CatalogCache
            Shared by every selection made in this process
        verbose : bool, optional
            Whether to output progress information
        log_level : int, optional
            Logging level used when verbose
        """

        # Set up logging for the whole package.
        self.logger = logging.getLogger("pyhalo_select")
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

        self.logger.setLevel(log_level if verbose else logging.WARNING)

        self.id_config = id_config
        self.global_config = global_config
        self.cache = cache
        self.timings = {}

    def _time(self, name, tic):
        self.timings[name] = time.time() - tic

    def run(self):
        """
        Run the selection.

        Returns
        -------
        lines : list
            Header line followed by one line per (repeated) selected halo
        """
        config = self.id_config
        config.validate()
        self.global_config.check_snap(config.snap)

        logger.info(
            "pyhalo_select id: snapshot %i, %s selection" % (config.snap, config.id_type)
        )
        start = time.time()

        tic = time.time()
        raw_ids = get_ids(config.id_start, config.id_end, config.ids)
        ids, snaps = resolve_ids(raw_ids, config.snap, config.id_type, self.cache)
        self._time("resolve", tic)
        logger.info(f"Resolved {len(ids)} halo IDs")

        tic = time.time()
        exclude = exclusion_flags(
            ids,
            snaps,
            self.cache,
            config.exclusion_strategy,
            config.exclusion_radius_mult,
            finder_cells=self.global_config.finder_cells,
        )
        self._time("exclusion", tic)
        logger.info(f"Excluding {int(np.sum(exclude))} of {len(ids)} halos")

        keep = ~exclude
        lines = format_cols([ids[keep], snaps[keep]])
        lines = expand_multiplicity(lines, config.mult)

        self._time("total", start)
        logger.info(f"Time: {self.timings['total']:.3f} s")

        return [comment_string(COLUMN_NAMES, [1, 1])] + lines

    def get_performance_report(self):
        """Timings of each stage, and of the catalog reads."""
        report = dict(self.timings)
        report.update(self.cache.timings)
        return report


def run_selection(id_config, global_config, cache, verbose=False):
    """Run one selection, see SelectionPipeline."""
    return SelectionPipeline(id_config, global_config, cache, verbose=verbose).run()
