"""
Exceptions raised by the reminder engine.

StorageError and NoActiveReminder reach the caller. PermissionDenied and
ChannelUnavailable are raised by delivery channels and absorbed (logged)
by the capability set.
"""


class MedicFacilError(Exception):
    """Base class for MedicFácil errors."""


class StorageError(MedicFacilError):
    """A read or write on the local database failed."""


class PermissionDenied(MedicFacilError):
    """The user refused a capability (e.g. system notifications)."""


class ChannelUnavailable(MedicFacilError):
    """A delivery channel is not supported on this machine."""


class NoActiveReminder(MedicFacilError):
    """A decision (taken / later / skip) was made while nothing was announced."""
