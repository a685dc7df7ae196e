"""Vault storage capability.

Only storage that can hand out a local filesystem base path can receive
captures, since the external tool writes straight to disk. Anything else
is rejected with UnsupportedStorage before a process is started.
"""

import os
from typing import Protocol, Union, runtime_checkable

from .errors import UnsupportedStorage


@runtime_checkable
class LocalFilesystemAccess(Protocol):
    """Capability of storage backed by a directory on the local machine."""

    def get_base_path(self) -> str:
        """Absolute path of the vault root."""
        ...


class FileSystemStorage:
    """Vault stored in a local directory."""

    def __init__(self, base_path: Union[str, "os.PathLike[str]"]):
        self._base_path = os.path.abspath(os.fspath(base_path))

    def get_base_path(self) -> str:
        return self._base_path

    def exists(self, relative_reference: str) -> bool:
        """Check that a reference points at a file inside the vault."""
        path = os.path.join(self._base_path, relative_reference.lstrip("/\\"))
        return os.path.isfile(path)

    def __repr__(self) -> str:
        return f"FileSystemStorage({self._base_path!r})"


def resolve_base_path(vault) -> str:
    """Get the local base path of a vault.

    Args:
        vault: A path (str or os.PathLike) or a storage object.

    Raises:
        UnsupportedStorage: If the storage has no local filesystem access.
    """
    if isinstance(vault, (str, os.PathLike)):
        return os.fspath(vault)
    if isinstance(vault, LocalFilesystemAccess):
        return vault.get_base_path()
    raise UnsupportedStorage(vault)
