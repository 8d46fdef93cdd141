"""Typed failures raised by the document store and its collection operations."""


class StoreError(Exception):
    """Base class for store-related exceptions."""


class NotFound(StoreError):
    pass


class Conflict(StoreError):
    pass


class Forbidden(StoreError):
    pass


class CorruptStore(StoreError):
    """The backing file exists but does not hold a valid document."""


class IOFailure(StoreError):
    """Reading or writing the backing file failed at the OS level."""


class HashingFailure(StoreError):
    pass
