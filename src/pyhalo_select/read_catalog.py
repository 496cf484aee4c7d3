import os

import h5py
import numpy as np

from .errors import CatalogIOError

# Accepted dataset names, per logical column, inside the "Halos" group.
COLUMN_NAME_MAP = {
    "id": ["ID", "id", "HaloID", "halo_id"],
    "x": ["X", "x", "pos_x"],
    "y": ["Y", "y", "pos_y"],
    "z": ["Z", "z", "pos_z"],
    "radius": ["R200m", "r200m", "Radius", "radius", "Rvir"],
    "mass": ["M200m", "m200m", "Mass", "mass", "Mvir"],
}

# (N, 3) datasets that can stand in for the x, y, z columns.
POSITION_NAMES = ["Position", "Coordinates", "Pos"]

ALL_COLUMNS = ["id", "x", "y", "z", "radius", "mass"]

HEADER_NAME_MAP = {
    "domain_width": ["BoxSize", "box_size"],
    "halo_count": ["NumHalos", "NumHalos_Total", "Nhalos"],
}


def _scalar(tmp):
    # Reduce size 1 arrays to a scalar quantity.
    if isinstance(tmp, np.ndarray) and tmp.size == 1:
        return tmp.reshape(-1)[0]
    return tmp


class HDF5CatalogReader:
    def __init__(
        self,
        fname_pattern,
        column_names=None,
        comm=None,
        max_size_to_read_at_once=2 * 1024.0**3,
    ):
        """
        Reads halo catalogs, one HDF5 file per snapshot.

        Each file holds a "Header" group, whose attributes give the box size
        ("BoxSize") and number of halos ("NumHalos"), and a "Halos" group with
        one dataset per column.

        Parameters
        ----------
        fname_pattern : str
            Path to the catalogs with a "{snap}" field, e.g.
            "halos/halos_{snap:03d}.hdf5"
        column_names : dict, optional
            Dataset name to use for a logical column ("id", "x", "y", "z",
            "radius", "mass"). Columns not given are resolved through
            COLUMN_NAME_MAP
        comm : mpi4py communicator, optional
            If passed, rank 0 reads the headers and broadcasts them
        max_size_to_read_at_once : float
            Max number of bytes read from a dataset in one go
        """

        self.fname_pattern = fname_pattern
        self.column_names = dict(column_names or {})
        self.max_size_to_read_at_once = max_size_to_read_at_once

        if comm is None:
            self.comm = None
            self.comm_rank = 0
            self.comm_size = 1
        else:
            self.comm = comm
            self.comm_rank = comm.rank
            self.comm_size = comm.size

    def fname(self, snap):
        return self.fname_pattern.format(snap=snap)

    def _open(self, snap):
        fname = self.fname(snap)
        if not os.path.isfile(fname):
            raise CatalogIOError("catalog file not found", snap, fname)
        try:
            return h5py.File(fname, "r")
        except OSError as e:
            raise CatalogIOError(f"could not open catalog ({e})", snap, fname) from e

    def read_headers(self, snap):
        """
        Read the header of a snapshot's catalog.

        Parameters
        ----------
        snap : int
            Snapshot index

        Returns
        -------
        header : dict
            "domain_width" (float) and "halo_count" (int)
        """

        header = None
        error = None

        if self.comm_rank == 0:
            try:
                header = self._read_headers(snap)
            except CatalogIOError as e:
                error = e

        if self.comm_size > 1:
            header, error = self.comm.bcast((header, error))
        if error is not None:
            raise error

        return header

    def _read_headers(self, snap):
        with self._open(snap) as f:
            if "Header" not in f:
                raise CatalogIOError("no Header group", snap, f.filename)
            attrs = f["Header"].attrs

            header = {}
            for key, names in HEADER_NAME_MAP.items():
                for name in names:
                    if name in attrs:
                        header[key] = _scalar(attrs.get(name))
                        break
                else:
                    raise CatalogIOError(
                        f"header is missing {names[0]}", snap, f.filename
                    )

        # Assume the box is the same size in all dimensions.
        if isinstance(header["domain_width"], np.ndarray):
            header["domain_width"] = header["domain_width"][0]
        header["domain_width"] = float(header["domain_width"])
        header["halo_count"] = int(header["halo_count"])

        return header

    def _dataset_name(self, grp, col, snap):
        if col in self.column_names:
            name = self.column_names[col]
            if name in grp:
                return name, None
        else:
            for name in COLUMN_NAME_MAP[col]:
                if name in grp:
                    return name, None

            # x/y/z may live in a single (N, 3) position dataset.
            if col in ("x", "y", "z"):
                for name in POSITION_NAMES:
                    if name in grp and grp[name].ndim == 2:
                        return name, "xyz".index(col)

        raise CatalogIOError(
            f"could not find a dataset for the '{col}' column", snap, grp.file.filename
        )

    def _read_chunked(self, dset, dim):
        """Read a whole column, never more than max_size_to_read_at_once bytes at a time."""

        num = dset.shape[0]
        return_array = np.empty(num, dtype=dset.dtype)
        return_array = return_array.astype(return_array.dtype.newbyteorder("="))
        if num == 0:
            return return_array

        byte_size = dset.dtype.itemsize * (1 if dset.ndim == 1 else dset.shape[1])
        num_per_read = max(1, int(self.max_size_to_read_at_once // byte_size))

        for left in range(0, num, num_per_read):
            right = min(num, left + num_per_read)
            if dim is None:
                return_array[left:right] = dset[left:right]
            else:
                return_array[left:right] = dset[left:right, dim]

        return return_array

    def read_catalog(self, snap, columns=ALL_COLUMNS):
        """
        Read columns of a snapshot's catalog, in file order.

        Parameters
        ----------
        snap : int
            Snapshot index
        columns : list
            Logical columns to read

        Returns
        -------
        data : dict
            One ndarray per requested column
        """

        data = {}
        with self._open(snap) as f:
            if "Halos" not in f:
                raise CatalogIOError("no Halos group", snap, f.filename)
            grp = f["Halos"]

            for col in columns:
                if col not in COLUMN_NAME_MAP:
                    raise CatalogIOError(f"unknown column '{col}'", snap, f.filename)
                name, dim = self._dataset_name(grp, col, snap)
                try:
                    data[col] = self._read_chunked(grp[name], dim)
                except OSError as e:
                    raise CatalogIOError(
                        f"error reading {name} ({e})", snap, f.filename
                    ) from e

            lengths = {len(v) for v in data.values()}
            if len(lengths) > 1:
                raise CatalogIOError(
                    "catalog columns have different lengths", snap, f.filename
                )

        return data


def write_catalog(fname, box_size, ids, xs, ys, zs, radii, masses):
    """
    Write a halo catalog in the layout HDF5CatalogReader expects.

    Parameters
    ----------
    fname : str
        Output file
    box_size : float
        Side length of the periodic box
    ids : array
        Halo IDs
    xs/ys/zs : array
        Halo centres
    radii : array
        Halo radii (R200m)
    masses : array
        Halo masses (M200m)
    """

    with h5py.File(fname, "w") as f:
        grp = f.create_group("Header")
        grp.attrs["BoxSize"] = float(box_size)
        grp.attrs["NumHalos"] = len(ids)

        grp = f.create_group("Halos")
        grp.create_dataset("ID", data=np.asarray(ids, dtype=np.int64))
        grp.create_dataset("X", data=np.asarray(xs, dtype=np.float64))
        grp.create_dataset("Y", data=np.asarray(ys, dtype=np.float64))
        grp.create_dataset("Z", data=np.asarray(zs, dtype=np.float64))
        grp.create_dataset("R200m", data=np.asarray(radii, dtype=np.float64))
        grp.create_dataset("M200m", data=np.asarray(masses, dtype=np.float64))
