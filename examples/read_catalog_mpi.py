from mpi4py import MPI

from pyhalo_select import CatalogCache, HDF5CatalogReader

"""
Example of reading catalog headers over MPI.

Rank 0 reads each header and broadcasts it, so only one rank touches the
file. Run with e.g. "mpirun -np 4 python3 read_catalog_mpi.py".
"""

comm = MPI.COMM_WORLD

reader = HDF5CatalogReader("halos/halos_{snap:03d}.hdf5", comm=comm)
cache = CatalogCache(reader)

header = cache.headers(100)
print(f"[Rank {comm.rank}] box size {header['domain_width']}, {header['halo_count']} halos")

# Every rank reads the (small) mass-sorted ID list itself.
ids = cache.sorted_ids(100, 9)
print(f"[Rank {comm.rank}] 10 most massive halos: {ids[:10]}")
