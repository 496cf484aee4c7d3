import os
import shutil
import tempfile

import pytest

from pyhalo_select import ConfigError, GlobalConfig, IDConfig, UnimplementedStrategyError


def _write(tmpdir, text, name="id.config"):
    fname = os.path.join(tmpdir, name)
    with open(fname, "w") as f:
        f.write(text)
    return fname


@pytest.fixture
def tmpdir_path():
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir)


def test_defaults(tmpdir_path):
    fname = _write(tmpdir_path, "[id.config]\nSnap = 100\nIDs = 10, 11, 12\n")
    config = IDConfig.from_file(fname)

    assert config.snap == 100
    assert config.ids == [10, 11, 12]
    assert config.id_type == "m200m"
    assert config.id_start == -1 and config.id_end == -1
    assert config.mult == 1
    assert config.exclusion_strategy == "overlap"
    assert config.exclusion_radius_mult == 1.0


def test_all_fields(tmpdir_path):
    text = """[id.config]
snap = 3
idtype = halo-id
IDStart = 5
IDEnd = 9   # exclusive
Mult = 2
ExclusionStrategy = none
ExclusionRadiusMult = 2.5
"""
    config = IDConfig.from_file(_write(tmpdir_path, text))

    assert config.snap == 3
    assert config.id_type == "halo-id"
    assert (config.id_start, config.id_end) == (5, 9)
    assert config.ids == []
    assert config.mult == 2
    assert config.exclusion_strategy == "none"
    assert config.exclusion_radius_mult == 2.5


def test_example_config_is_valid(tmpdir_path):
    config = IDConfig.from_file(_write(tmpdir_path, IDConfig.example_config()))
    assert config.snap == 100
    assert config.ids == [10, 11, 12, 13, 14]


@pytest.mark.parametrize(
    "fields",
    [
        dict(id_type="vmax", ids=[1], snap=1),
        dict(exclusion_strategy="closest", ids=[1], snap=1),
        dict(exclusion_radius_mult=0.0, ids=[1], snap=1),
        dict(exclusion_radius_mult=-1.0, ids=[1], snap=1),
        dict(snap=1),
        dict(id_start=3, snap=1),
        dict(id_end=3, snap=1),
        dict(id_start=5, id_end=3, snap=1),
        dict(ids=[1]),
        dict(ids=[1], snap=-4),
        dict(ids=[1], snap=1, mult=0),
    ],
)
def test_invalid(fields):
    with pytest.raises(ConfigError):
        IDConfig(**fields).validate()


def test_radius_mult_only_checked_for_overlap():
    IDConfig(ids=[1], snap=1, exclusion_strategy="none", exclusion_radius_mult=0).validate()


def test_subhalo_strategy(tmpdir_path):
    fname = _write(
        tmpdir_path, "[id.config]\nSnap = 1\nIDs = 1\nExclusionStrategy = subhalo\n"
    )
    with pytest.raises(UnimplementedStrategyError):
        IDConfig.from_file(fname)


def test_bad_files(tmpdir_path):
    with pytest.raises(ConfigError):
        IDConfig.from_file(os.path.join(tmpdir_path, "missing.config"))
    with pytest.raises(ConfigError):
        IDConfig.from_file(_write(tmpdir_path, "[other]\nSnap = 1\n"))
    with pytest.raises(ConfigError):
        IDConfig.from_file(_write(tmpdir_path, "[id.config]\nSnap = one\nIDs = 1\n"))


def test_global_config(tmpdir_path):
    text = """[global.config]
CatalogPattern = halos/halos_{snap:03d}.hdf5
SnapMin = 10
SnapMax = 100
HaloIDColumn = HaloID
HaloPositionColumns = PosX, PosY, PosZ
HaloM200mColumn = M200
FinderCells = 64
"""
    config = GlobalConfig.from_file(_write(tmpdir_path, text, "global.config"))

    assert config.catalog_pattern == "halos/halos_{snap:03d}.hdf5"
    assert (config.snap_min, config.snap_max) == (10, 100)
    assert config.finder_cells == 64
    assert config.column_names == {
        "id": "HaloID", "x": "PosX", "y": "PosY", "z": "PosZ", "mass": "M200",
    }

    config.check_snap(10)
    config.check_snap(100)
    with pytest.raises(ConfigError):
        config.check_snap(9)
    with pytest.raises(ConfigError):
        config.check_snap(101)


def test_global_config_invalid(tmpdir_path):
    for text in [
        "[global.config]\nSnapMin = 1\n",
        "[global.config]\nCatalogPattern = halos.hdf5\n",
        "[global.config]\nCatalogPattern = h_{snap}.hdf5\nSnapMin = 5\nSnapMax = 2\n",
        "[global.config]\nCatalogPattern = h_{snap}.hdf5\nHaloPositionColumns = X, Y\n",
    ]:
        with pytest.raises(ConfigError):
            GlobalConfig.from_file(_write(tmpdir_path, text, "global.config"))
