from pyhalo_select import CatalogCache, GlobalConfig, HDF5CatalogReader, IDConfig
from pyhalo_select import SelectionPipeline

"""
Example selection script.

Replace the catalog path with the location of your halo catalogs (one HDF5
file per snapshot, see pyhalo_select.write_catalog for the layout).
"""

# Where the catalogs live and which snapshots are valid.
global_config = GlobalConfig("halos/halos_{snap:03d}.hdf5", snap_min=0, snap_max=100)

# One cache for the whole run, so each catalog is only read once.
cache = CatalogCache(HDF5CatalogReader(global_config.catalog_pattern))

# The 100 most massive halos of snapshot 100, dropping any that sit inside a
# larger halo's R200m.
config = IDConfig(
    id_type="m200m",
    id_start=0,
    id_end=100,
    snap=100,
    exclusion_strategy="overlap",
    exclusion_radius_mult=1.0,
)

pipeline = SelectionPipeline(config, global_config, cache, verbose=True)
for line in pipeline.run():
    print(line)

# The second selection reuses everything already loaded for snapshot 100.
config = IDConfig(id_type="halo-id", ids=[10, 11, 12], snap=100, mult=3)
for line in SelectionPipeline(config, global_config, cache).run():
    print(line)

print(pipeline.get_performance_report())
