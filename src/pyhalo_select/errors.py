"""
Exception types raised by pyhalo_select.

Every stage of a selection either returns its result or raises one of
these; nothing is retried and no partial output is produced.
"""


class HaloSelectError(Exception):
    """Base class for all pyhalo_select errors."""


class ConfigError(HaloSelectError):
    """Invalid or missing selection parameters, detected before any I/O."""


class RangeError(HaloSelectError):
    """A requested mass rank or halo ID does not exist in a catalog."""


class UnknownIDError(RangeError, KeyError):
    """A requested halo ID is absent from a snapshot's catalog."""

    def __init__(self, halo_id, snap):
        self.halo_id = halo_id
        self.snap = snap
        super().__init__(f"ID {halo_id} not in halo list of snapshot {snap}.")

    def __str__(self):
        return self.args[0]


class CatalogIOError(HaloSelectError):
    """
    Failure reading a catalog from storage.

    Parameters
    ----------
    msg : str
        Description of the failure
    snap : int
        Snapshot being read
    fname : str, optional
        File being read
    """

    def __init__(self, msg, snap, fname=None):
        self.msg = msg
        self.snap = snap
        self.fname = fname
        if fname is None:
            super().__init__(f"Snapshot {snap}: {msg}")
        else:
            super().__init__(f"Snapshot {snap} ({fname}): {msg}")

    def __reduce__(self):
        # Keeps the error picklable, for broadcasting over MPI.
        return (self.__class__, (self.msg, self.snap, self.fname))


class PreconditionError(HaloSelectError):
    """Malformed internal inputs (a caller defect, not a data problem)."""


class UnimplementedStrategyError(PreconditionError, ConfigError):
    """An exclusion strategy that is reserved but not implemented."""

    def __init__(self, strategy):
        self.strategy = strategy
        super().__init__(
            f"The '{strategy}' exclusion strategy is not implemented."
        )
