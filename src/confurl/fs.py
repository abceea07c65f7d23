"""Filesystem-style hooks for URL configuration paths.

A host that reads its configuration through ``open``/``read``/``close``/
``stat`` hooks can route those calls here. Paths with a recognized URL
scheme are fetched and served from memory; anything else falls through to
the real filesystem.
"""

from __future__ import annotations

import logging
import os
import stat as stat_module
from dataclasses import dataclass
from typing import Optional, Union

from .fetcher import URLCONF_FILENO, ConfigUrlFile, UrlFetcher
from .logging_config import Tracing
from .models.config import DEFAULT_BLOCK_SIZE
from .uri import SUPPORTED_SCHEMES, is_supported_scheme

logger = logging.getLogger(__name__)

Handle = Union[ConfigUrlFile, int]


@dataclass(frozen=True)
class SyntheticStat:
    """Stat result reported for URL paths; nothing on disk is consulted."""

    st_mode: int = stat_module.S_IFREG
    st_blksize: int = DEFAULT_BLOCK_SIZE
    st_size: int = 0

    @property
    def is_regular_file(self) -> bool:
        return stat_module.S_ISREG(self.st_mode)

    @property
    def block_size(self) -> int:
        return self.st_blksize


class UrlConfigFS:
    """
    Hook implementations for one or more URL scheme prefixes.

    Example:
        fs = UrlConfigFS(UrlFetcher())
        handle = fs.open("https://example.com/proftpd.conf")
        data = fs.read(handle, 4096)
        fs.close(handle)
    """

    def __init__(self, fetcher: Optional[UrlFetcher] = None, block_size: Optional[int] = None):
        self.fetcher = fetcher or UrlFetcher()
        self.block_size = block_size or self.fetcher.config.block_size

    def handles(self, path: str) -> bool:
        """Whether ``path`` is a URL this filesystem intercepts."""
        return is_supported_scheme(path, tls_available=self.fetcher.engine.features.ssl)

    def _synthetic_stat(self) -> SyntheticStat:
        return SyntheticStat(st_blksize=self.block_size)

    def open(self, path: str, flags: int = os.O_RDONLY, mode: int = 0o666) -> Handle:
        """
        Open ``path``.

        Returns:
            ConfigUrlFile for URL paths, else a real file descriptor

        Raises:
            OSError: ConfUrlError for URL paths, or the OS error otherwise
        """
        if self.handles(path):
            return self.fetcher.open(path)

        return os.open(path, flags, mode)

    def read(self, handle: Handle, size: int) -> bytes:
        """Read up to ``size`` bytes; an empty result means end of file."""
        if isinstance(handle, ConfigUrlFile):
            return handle.read(size)
        return os.read(handle, size)

    def close(self, handle: Handle) -> None:
        if isinstance(handle, ConfigUrlFile):
            handle.close()
            return
        os.close(handle)

    def stat(self, path: str) -> Union[SyntheticStat, os.stat_result]:
        if self.handles(path):
            return self._synthetic_stat()
        return os.stat(path)

    def lstat(self, path: str) -> Union[SyntheticStat, os.stat_result]:
        if self.handles(path):
            return self._synthetic_stat()
        return os.lstat(path)

    def fstat(self, handle: Handle) -> Union[SyntheticStat, os.stat_result]:
        if isinstance(handle, ConfigUrlFile) or handle == URLCONF_FILENO:
            return self._synthetic_stat()
        return os.fstat(handle)


class FSRegistry:
    """Maps path prefixes to the filesystems that serve them."""

    def __init__(self) -> None:
        self._filesystems: dict[str, UrlConfigFS] = {}

    def register(self, prefix: str, fs: UrlConfigFS) -> None:
        """
        Register ``fs`` for paths starting with ``prefix``.

        Raises:
            FileExistsError: If ``prefix`` is already registered
        """
        key = prefix.lower()
        if key in self._filesystems:
            raise FileExistsError(f"filesystem already registered for '{prefix}'")
        self._filesystems[key] = fs

    def unregister(self, prefix: str) -> UrlConfigFS:
        """
        Remove the filesystem registered for ``prefix``.

        Raises:
            FileNotFoundError: If nothing is registered for ``prefix``
        """
        try:
            return self._filesystems.pop(prefix.lower())
        except KeyError:
            raise FileNotFoundError(f"no filesystem registered for '{prefix}'") from None

    def lookup(self, path: str) -> Optional[UrlConfigFS]:
        """Return the filesystem for ``path``, or None for the default one."""
        lowered = path.lower()
        for prefix, fs in self._filesystems.items():
            if lowered.startswith(prefix):
                return fs
        return None

    @property
    def prefixes(self) -> list[str]:
        return list(self._filesystems)


class ConfUrlModule:
    """
    Ties URL filesystems into a host's configuration lifecycle.

    - :meth:`init` registers one filesystem per supported scheme.
    - :meth:`on_postparse` unregisters them once configuration parsing is
      done, and turns tracing back off.
    - :meth:`on_restart` registers them again before the next parse.
    - :meth:`unload` unregisters and releases the transport context.
    """

    def __init__(
        self,
        registry: FSRegistry,
        fetcher: Optional[UrlFetcher] = None,
        tracing: Optional[Tracing] = None,
    ):
        self.registry = registry
        self.fetcher = fetcher or UrlFetcher()
        self.tracing = tracing or self.fetcher.tracing
        self.fs: Optional[UrlConfigFS] = None

    def init(self) -> None:
        self.fs = UrlConfigFS(self.fetcher)
        self.register()

    def register(self) -> None:
        """Register the URL filesystem for every supported scheme."""
        if self.fs is None:
            self.fs = UrlConfigFS(self.fetcher)

        for scheme in SUPPORTED_SCHEMES:
            try:
                self.registry.register(scheme, self.fs)
            except FileExistsError as e:
                logger.debug(f"Error registering '{scheme}' fs: {e}")
                return
            logger.debug(f"Registered '{scheme}' fs")

    def unregister(self) -> None:
        for scheme in SUPPORTED_SCHEMES:
            try:
                self.registry.unregister(scheme)
            except FileNotFoundError:
                continue
            logger.debug(f"'{scheme}' fs unregistered")

    def on_postparse(self) -> None:
        self.unregister()
        if self.tracing.enabled:
            self.tracing.disable()

    def on_restart(self) -> None:
        self.register()

    def unload(self) -> None:
        self.unregister()
        self.fetcher.close()
