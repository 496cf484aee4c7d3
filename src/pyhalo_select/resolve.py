import numpy as np

from .errors import ConfigError, RangeError

ID_TYPES = ["halo-id", "m200m"]


def get_ids(id_start, id_end, ids):
    """
    Raw selectors from either an ID range or an explicit list.

    Parameters
    ----------
    id_start/id_end : int
        Range [id_start, id_end), used when `ids` is empty
    ids : list
        Explicit selectors

    Returns
    -------
    - : ndarray
        Raw selectors, in order
    """
    if len(ids) == 0 and id_start != -1:
        return np.arange(id_start, id_end, dtype=np.int64)
    return np.asarray(ids, dtype=np.int64).reshape(-1)


def convert_sorted_ids(raw_ids, snap, cache):
    """Map zero-based mass ranks to catalog IDs."""

    raw_ids = np.asarray(raw_ids, dtype=np.int64)
    if len(raw_ids) == 0:
        return raw_ids

    if np.any(raw_ids < 0):
        raise RangeError(f"Mass rank {raw_ids.min()} is negative.")

    halo_count = cache.headers(snap)["halo_count"]
    max_rank = int(raw_ids.max())
    if max_rank >= halo_count:
        raise RangeError(
            f"Mass rank {max_rank} requested, but snapshot {snap} only has "
            f"{halo_count} halos (max rank {halo_count - 1})."
        )

    rids = cache.sorted_ids(snap, max_rank)
    if max_rank >= len(rids):
        raise RangeError(
            f"Mass rank {max_rank} requested, but snapshot {snap} only has "
            f"{len(rids)} halos in its catalog."
        )
    return rids[raw_ids]


def resolve_ids(raw_ids, snap, id_type, cache):
    """
    Turn raw selectors into catalog halo IDs.

    Parameters
    ----------
    raw_ids : array
        Halo IDs ("halo-id") or mass ranks ("m200m")
    snap : int
        Snapshot the selectors refer to
    id_type : str
        "halo-id" or "m200m"
    cache : CatalogCache
        Used for the mass ranks

    Returns
    -------
    ids : ndarray
        Catalog ID for each selector
    snaps : ndarray
        Snapshot of each selector
    """

    raw_ids = np.asarray(raw_ids, dtype=np.int64).reshape(-1)

    if id_type == "halo-id":
        ids = raw_ids.copy()
    elif id_type == "m200m":
        ids = convert_sorted_ids(raw_ids, snap, cache)
    else:
        raise ConfigError(f"The 'IDType' variable is set to '{id_type}', which I don't recognize.")

    snaps = np.full(len(ids), snap, dtype=np.int64)
    return np.array(ids, dtype=np.int64), snaps
