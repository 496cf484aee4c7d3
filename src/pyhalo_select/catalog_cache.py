import logging
import time
from collections import Counter
from typing import NamedTuple

import numpy as np

from .errors import CatalogIOError, PreconditionError, UnknownIDError
from .read_catalog import ALL_COLUMNS

logger = logging.getLogger(__name__)


class HaloRecord(NamedTuple):
    id: int
    x: float
    y: float
    z: float
    radius: float
    mass: float

    @property
    def position(self):
        return (self.x, self.y, self.z)


class _CacheEntry:
    """Everything loaded for one snapshot."""

    def __init__(self):
        self.header = None

        # Mass-sorted IDs and the largest rank they were read for (-1 = all).
        self.sorted_ids = None
        self.sorted_bound = None

        # Full catalog columns, and the argsort of their IDs for lookups.
        self.records = None
        self.id_sorter = None


class CatalogCache:
    def __init__(self, reader):
        """
        Remembers what has been read from each snapshot's catalog, so repeated
        lookups in one run never re-read the files.

        Nothing is ever evicted; a run is expected to fit in memory.

        Parameters
        ----------
        reader : HDF5CatalogReader
            Anything with read_headers(snap) and read_catalog(snap, columns)
        """
        self.reader = reader
        self._entries = {}

        # Number of reads from storage, keyed by (kind, snap).
        self.read_counts = Counter()
        self.timings = {}

    def _entry(self, snap):
        if snap not in self._entries:
            self._entries[snap] = _CacheEntry()
        return self._entries[snap]

    def _read(self, kind, snap, func, *args):
        tic = time.time()
        out = func(snap, *args)
        self.read_counts[(kind, snap)] += 1
        self.timings[f"read_{kind}_{snap}"] = time.time() - tic
        return out

    def headers(self, snap):
        """
        Header of a snapshot's catalog, read on first use.

        Returns
        -------
        header : dict
            "domain_width" and "halo_count"
        """
        entry = self._entry(snap)
        if entry.header is None:
            logger.debug(f"Reading header of snapshot {snap}")
            entry.header = self._read("headers", snap, self.reader.read_headers)
        return entry.header

    def sorted_ids(self, snap, max_rank):
        """
        Halo IDs of a snapshot sorted by descending mass.

        The list holds at least max_rank + 1 entries (fewer only if the
        catalog is smaller than that), or the whole catalog for
        max_rank = -1. The catalog is scanned on the first call and again
        only when a larger bound than any seen so far is asked for.

        Parameters
        ----------
        snap : int
            Snapshot index
        max_rank : int
            Largest mass rank needed, or -1 for all halos

        Returns
        -------
        ids : ndarray
            Read-only array of IDs; ids[rank] is the halo with that mass rank
        """

        if max_rank < -1:
            raise PreconditionError(f"max_rank must be >= -1, got {max_rank}")

        entry = self._entry(snap)
        if entry.sorted_ids is not None and (
            entry.sorted_bound == -1
            or (max_rank != -1 and max_rank <= entry.sorted_bound)
        ):
            return entry.sorted_ids

        logger.info(f"Sorting halos of snapshot {snap} by mass (max rank {max_rank})")
        data = self._read(
            "sorted_ids", snap, self.reader.read_catalog, ["id", "mass"]
        )

        ids = np.asarray(data["id"], dtype=np.int64)
        if len(np.unique(ids)) != len(ids):
            raise CatalogIOError("catalog contains duplicate halo IDs", snap)

        # Stable, so halos of equal mass keep their catalog order.
        order = np.argsort(-np.asarray(data["mass"]), kind="stable")
        ids = ids[order]
        if max_rank != -1:
            ids = ids[: max_rank + 1]
        ids.flags.writeable = False

        entry.sorted_ids = ids
        entry.sorted_bound = max_rank
        return ids

    def _load_records(self, snap):
        entry = self._entry(snap)
        if entry.records is None:
            logger.info(f"Loading halo catalog of snapshot {snap}")
            data = self._read("records", snap, self.reader.read_catalog, ALL_COLUMNS)

            data["id"] = np.asarray(data["id"], dtype=np.int64)
            sorter = np.argsort(data["id"], kind="stable")
            if np.any(np.diff(data["id"][sorter]) == 0):
                raise CatalogIOError("catalog contains duplicate halo IDs", snap)

            for arr in data.values():
                arr.flags.writeable = False
            entry.records = data
            entry.id_sorter = sorter
        return entry

    def rows(self, snap, ids):
        """
        Catalog rows of the halos with the given IDs, matched exactly on ID.

        Raises
        ------
        UnknownIDError
            If any of the IDs is not in the catalog
        """

        entry = self._load_records(snap)
        ids = np.asarray(ids, dtype=np.int64).reshape(-1)
        all_ids = entry.records["id"]
        sorted_ids = all_ids[entry.id_sorter]

        pos = np.searchsorted(sorted_ids, ids)
        pos = np.minimum(pos, len(sorted_ids) - 1)
        if len(sorted_ids) == 0:
            found = np.zeros(len(ids), dtype=bool)
        else:
            found = sorted_ids[pos] == ids
        if not np.all(found):
            raise UnknownIDError(int(ids[~found][0]), snap)

        return entry.id_sorter[pos]

    def halo_arrays(self, snap, ids):
        """
        Catalog columns for the given IDs, in the order of `ids`.

        Returns
        -------
        data : dict
            "id", "x", "y", "z", "radius" and "mass" arrays
        """
        entry = self._load_records(snap)
        rows = self.rows(snap, ids)
        return {col: entry.records[col][rows] for col in ALL_COLUMNS}

    def halo_records(self, snap, ids):
        """
        HaloRecord for each ID, in the order of `ids`.

        Raises
        ------
        UnknownIDError
            If any of the IDs is not in the catalog
        CatalogIOError
            If the catalog can't be read
        """
        data = self.halo_arrays(snap, ids)
        return [
            HaloRecord(
                int(data["id"][i]),
                float(data["x"][i]),
                float(data["y"][i]),
                float(data["z"][i]),
                float(data["radius"][i]),
                float(data["mass"][i]),
            )
            for i in range(len(data["id"]))
        ]

    def snapshots(self):
        """Snapshots with anything cached."""
        return sorted(self._entries)
