import importlib.metadata

from .catalog_cache import CatalogCache, HaloRecord
from .config import GlobalConfig, IDConfig
from .errors import (
    CatalogIOError,
    ConfigError,
    HaloSelectError,
    PreconditionError,
    RangeError,
    UnimplementedStrategyError,
    UnknownIDError,
)
from .grid import Grid
from .pipeline import SelectionPipeline, run_selection
from .read_catalog import HDF5CatalogReader, write_catalog
from .resolve import resolve_ids
from .subhalo_finder import SubhaloFinder

__version__ = importlib.metadata.version("pyhalo_select")
