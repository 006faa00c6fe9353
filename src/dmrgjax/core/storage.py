"""Key/value stores for site and environment tensors.

Tensors live in a :class:`TensorStore` (plain dict in memory) until a run
switches to disk offload, after which they are kept in a
:class:`DiskTensorStore`: one ``.npy`` file per tensor in a scratch
directory.  Both stores hand back ``jax.Array`` values, so code that reads
from them does not care where the data lives.
"""

from __future__ import annotations

import shutil
import tempfile
import weakref
from collections.abc import Hashable, Iterator, MutableMapping
from pathlib import Path

import jax
import jax.numpy as jnp
import numpy as np


class TensorStore(MutableMapping):
    """In-memory tensor store."""

    disk_backed = False

    def __init__(self) -> None:
        self._data: dict[Hashable, jax.Array] = {}

    def __getitem__(self, key: Hashable) -> jax.Array:
        return self._data[key]

    def __setitem__(self, key: Hashable, value: jax.Array) -> None:
        self._data[key] = value

    def __delitem__(self, key: Hashable) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"TensorStore(n={len(self)})"


class DiskTensorStore(MutableMapping):
    """Tensor store writing every entry to its own ``.npy`` file.

    The scratch directory is created under ``write_dir`` and removed when
    the store is garbage collected.

    Args:
        write_dir: Parent directory for the scratch directory.
        prefix:    Prefix of the scratch directory name.
    """

    disk_backed = True

    def __init__(self, write_dir: str | Path = "./", prefix: str = "dmrgjax_") -> None:
        parent = Path(write_dir)
        parent.mkdir(parents=True, exist_ok=True)
        self.directory = Path(tempfile.mkdtemp(prefix=prefix, dir=parent))
        self._files: dict[Hashable, Path] = {}
        self._finalizer = weakref.finalize(
            self, shutil.rmtree, self.directory, ignore_errors=True
        )

    def _path(self, key: Hashable) -> Path:
        # Keys are small tuples like ("L", 3); keep file names readable.
        if isinstance(key, tuple):
            stem = "_".join(str(k) for k in key)
        else:
            stem = str(key)
        return self.directory / f"{stem}.npy"

    def __getitem__(self, key: Hashable) -> jax.Array:
        path = self._files[key]
        return jnp.asarray(np.load(path))

    def __setitem__(self, key: Hashable, value: jax.Array) -> None:
        path = self._path(key)
        np.save(path, np.asarray(value))
        self._files[key] = path

    def __delitem__(self, key: Hashable) -> None:
        path = self._files.pop(key)
        path.unlink(missing_ok=True)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def close(self) -> None:
        """Delete the scratch directory now instead of at collection time."""
        self._files.clear()
        self._finalizer()

    def __repr__(self) -> str:
        return f"DiskTensorStore(dir={str(self.directory)!r}, n={len(self)})"


def move_to_disk(store: MutableMapping, write_dir: str | Path) -> DiskTensorStore:
    """Copy every entry of ``store`` into a fresh :class:`DiskTensorStore`."""
    disk = DiskTensorStore(write_dir)
    for key, value in store.items():
        disk[key] = value
    return disk
