"""Shared types for the cttdb package."""

from typing import Any

Row = dict[str, Any]
Params = tuple | list | dict
ParamsList = list[tuple] | list[list]


class StorageError(Exception):
    """A backend driver error raised inside a transaction.

    The transaction has already been rolled back when this is raised; the
    original driver exception is kept as ``__cause__``.
    """
