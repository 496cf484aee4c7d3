"""
Configuration files for the id mode.

Two INI files are used:

- an id.config file, section [id.config], describing one selection
  (which halos, which snapshot, how to exclude subhalos);
- a global config file, section [global.config], describing the
  simulation (valid snapshot range, where the catalogs live and what their
  columns are called).

Keys are case insensitive. Run `pyhalo_select example-config` for an
annotated id.config.
"""

import configparser
import os

from .errors import ConfigError, UnimplementedStrategyError
from .resolve import ID_TYPES

EXCLUSION_STRATEGIES = ["none", "subhalo", "overlap"]

# Strategies that are reserved names but have no implementation.
UNIMPLEMENTED_STRATEGIES = ["subhalo"]

DEFAULT_FINDER_CELLS = 150

EXAMPLE_CONFIG = """[id.config]
#####################
## Required Fields ##
#####################

# Index of the snapshot to be analyzed.
Snap = 100

IDs = 10, 11, 12, 13, 14

#####################
## Optional Fields ##
#####################

# IDType indicates what the input IDs correspond to. It can be set to the
# following modes:
# halo-id - The numeric IDs given in the halo catalog.
# m200m   - The rank of the halos when sorted by M200m.
#
# Defaults to m200m if not set.
# IDType = m200m

# An alternative way of specifying IDs is to give start and end values. The
# range includes IDStart but not IDEnd. If the IDs variable is not set, both
# of these values must be set.
#
# IDStart = 10
# IDEnd = 15

# ExclusionStrategy determines how to exclude IDs from the given set. This is
# useful because splashback shells are not particularly meaningful for
# subhalos. It can be set to the following modes:
# none    - No halos are removed
# subhalo - Halos flagged as subhalos in the catalog are removed (reserved,
#           not implemented yet)
# overlap - Halos whose centers lie within the R200m sphere of a larger halo
#           are removed
#
# ExclusionStrategy defaults to overlap if not set.
#
# ExclusionStrategy = overlap

# ExclusionRadiusMult is a multiplier of R200m applied for the sake of
# determining exclusions.
#
# ExclusionRadiusMult defaults to 1 if not set.
#
# ExclusionRadiusMult = 1

# Mult is the number of times a given ID should be repeated. This is most
# useful if you want to estimate the scatter in shell measurements for halos
# with a given set of shell parameters.
#
# Mult defaults to 1 if not set.
#
# Mult = 1
"""


def _read_section(fname, section):
    if not os.path.isfile(fname):
        raise ConfigError(f"Config file {fname} not found.")

    cfg = configparser.ConfigParser(
        inline_comment_prefixes=("#",), interpolation=None
    )
    try:
        cfg.read(fname)
    except configparser.Error as e:
        raise ConfigError(f"Could not parse {fname}: {e}") from e

    if section not in cfg:
        raise ConfigError(f"{fname} has no [{section}] section.")
    return cfg[section]


def _get(section, key, conv, default):
    if key not in section or section[key].strip() == "":
        return default
    try:
        return conv(section[key])
    except ValueError as e:
        raise ConfigError(
            f"The '{key}' variable is set to '{section[key]}', which can't be "
            f"parsed ({e})."
        ) from e


def _int_list(s):
    return [int(tok) for tok in s.replace(",", " ").split()]


def _str_list(s):
    return [tok.strip() for tok in s.split(",") if tok.strip() != ""]


class IDConfig:
    def __init__(
        self,
        id_type="m200m",
        ids=None,
        id_start=-1,
        id_end=-1,
        snap=-1,
        mult=1,
        exclusion_strategy="overlap",
        exclusion_radius_mult=1.0,
    ):
        """
        Parameters of one halo selection.

        Parameters
        ----------
        id_type : str
            "halo-id" (catalog IDs) or "m200m" (mass ranks)
        ids : list, optional
            Explicit selectors
        id_start/id_end : int
            Selector range [id_start, id_end), used when `ids` is empty
        snap : int
            Snapshot to select from
        mult : int
            Number of times each selected halo is repeated
        exclusion_strategy : str
            "none", "subhalo" or "overlap"
        exclusion_radius_mult : float
            Multiplier of the halo radii used by the overlap strategy
        """
        self.id_type = id_type
        self.ids = list(ids) if ids is not None else []
        self.id_start = id_start
        self.id_end = id_end
        self.snap = snap
        self.mult = mult
        self.exclusion_strategy = exclusion_strategy
        self.exclusion_radius_mult = exclusion_radius_mult

    @classmethod
    def from_file(cls, fname):
        """Read and validate an id.config file."""

        section = _read_section(fname, "id.config")
        config = cls(
            id_type=_get(section, "IDType", str.strip, "m200m"),
            ids=_get(section, "IDs", _int_list, []),
            id_start=_get(section, "IDStart", int, -1),
            id_end=_get(section, "IDEnd", int, -1),
            snap=_get(section, "Snap", int, -1),
            mult=_get(section, "Mult", int, 1),
            exclusion_strategy=_get(section, "ExclusionStrategy", str.strip, "overlap"),
            exclusion_radius_mult=_get(section, "ExclusionRadiusMult", float, 1.0),
        )
        config.validate()
        return config

    @staticmethod
    def example_config():
        return EXAMPLE_CONFIG

    def validate(self):
        """
        Check that every field is valid.

        Raises
        ------
        ConfigError
            On the first invalid field
        UnimplementedStrategyError
            If a reserved but unimplemented exclusion strategy is asked for
        """

        if self.id_type not in ID_TYPES:
            raise ConfigError(
                f"The 'IDType' variable is set to '{self.id_type}', which I "
                "don't recognize."
            )

        if self.exclusion_strategy not in EXCLUSION_STRATEGIES:
            raise ConfigError(
                f"The 'ExclusionStrategy' variable is set to "
                f"'{self.exclusion_strategy}', which I don't recognize."
            )
        if self.exclusion_strategy in UNIMPLEMENTED_STRATEGIES:
            raise UnimplementedStrategyError(self.exclusion_strategy)
        if self.exclusion_strategy == "overlap" and not self.exclusion_radius_mult > 0:
            raise ConfigError(
                f"The 'ExclusionRadiusMult' variable is set to "
                f"{self.exclusion_radius_mult:g}, but it needs to be positive."
            )

        if len(self.ids) == 0:
            if self.id_start == -1 and self.id_end == -1:
                raise ConfigError("'IDs' variable not set.")
            elif self.id_start == -1:
                raise ConfigError("'IDStart' variable not set.")
            elif self.id_end == -1:
                raise ConfigError("'IDEnd' variable not set.")
            elif self.id_end < self.id_start:
                raise ConfigError(
                    f"'IDEnd' variable set to {self.id_end}, but 'IDStart' "
                    f"variable set to {self.id_start}."
                )

        if self.snap == -1:
            raise ConfigError("'Snap' variable not set.")
        elif self.snap < 0:
            raise ConfigError(f"'Snap' variable set to {self.snap}.")

        if self.mult <= 0:
            raise ConfigError(f"'Mult' variable set to {self.mult}.")


class GlobalConfig:
    def __init__(
        self,
        catalog_pattern,
        snap_min=0,
        snap_max=-1,
        column_names=None,
        finder_cells=DEFAULT_FINDER_CELLS,
    ):
        """
        Simulation-wide settings.

        Parameters
        ----------
        catalog_pattern : str
            Path to the halo catalogs with a "{snap}" field
        snap_min/snap_max : int
            Valid snapshot range (inclusive). snap_max = -1 means no upper
            limit
        column_names : dict, optional
            Catalog dataset name per logical column
        finder_cells : int
            Cells per side of the grid used by the overlap search
        """
        self.catalog_pattern = catalog_pattern
        self.snap_min = snap_min
        self.snap_max = snap_max
        self.column_names = dict(column_names or {})
        self.finder_cells = finder_cells

    @classmethod
    def from_file(cls, fname):
        """Read and validate a global config file."""

        section = _read_section(fname, "global.config")

        catalog_pattern = _get(section, "CatalogPattern", str.strip, None)
        if catalog_pattern is None:
            raise ConfigError("'CatalogPattern' variable not set.")

        column_names = {}
        for key, col in [
            ("HaloIDColumn", "id"),
            ("HaloRadiusColumn", "radius"),
            ("HaloM200mColumn", "mass"),
        ]:
            name = _get(section, key, str.strip, None)
            if name is not None:
                column_names[col] = name

        pos_names = _get(section, "HaloPositionColumns", _str_list, None)
        if pos_names is not None:
            if len(pos_names) != 3:
                raise ConfigError(
                    f"'HaloPositionColumns' needs 3 entries, got {len(pos_names)}."
                )
            column_names.update(zip(["x", "y", "z"], pos_names))

        config = cls(
            catalog_pattern,
            snap_min=_get(section, "SnapMin", int, 0),
            snap_max=_get(section, "SnapMax", int, -1),
            column_names=column_names,
            finder_cells=_get(section, "FinderCells", int, DEFAULT_FINDER_CELLS),
        )
        config.validate()
        return config

    def validate(self):
        if "{snap" not in self.catalog_pattern:
            raise ConfigError(
                f"'CatalogPattern' is set to '{self.catalog_pattern}', which "
                "has no {snap} field."
            )
        if self.snap_min < 0:
            raise ConfigError(f"'SnapMin' variable set to {self.snap_min}.")
        if self.snap_max != -1 and self.snap_max < self.snap_min:
            raise ConfigError(
                f"'SnapMax' = {self.snap_max}, but 'SnapMin' = {self.snap_min}."
            )
        if self.finder_cells < 1:
            raise ConfigError(f"'FinderCells' variable set to {self.finder_cells}.")

    def check_snap(self, snap):
        """Raise ConfigError if `snap` is outside [snap_min, snap_max]."""
        if snap < self.snap_min or (self.snap_max != -1 and snap > self.snap_max):
            raise ConfigError(
                f"'Snap' = {snap}, but 'SnapMin' = {self.snap_min} and "
                f"'SnapMax' = {self.snap_max}."
            )
