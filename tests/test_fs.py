"""Tests for the filesystem hooks and module lifecycle."""

import os
import stat

import pytest
from confurl.errors import ResponseError
from confurl.fetcher import URLCONF_FILENO, ConfigUrlFile, UrlFetcher
from confurl.fs import ConfUrlModule, FSRegistry, SyntheticStat, UrlConfigFS
from confurl.models.config import ConfUrlConfig
from confurl.transport.protocols import EngineFeatures
from confurl.uri import SUPPORTED_SCHEMES


@pytest.fixture
def fs(fetcher):
    return UrlConfigFS(fetcher)


class TestHooks:
    """Tests for open/read/close/stat on URL paths."""

    def test_open_read_close(self, fs, engine):
        """Test reading a URL through the hooks."""
        engine.script.chunks = [b"x" * 35]
        handle = fs.open("https://host/conf")
        assert isinstance(handle, ConfigUrlFile)

        sizes = []
        while True:
            chunk = fs.read(handle, 8)
            if not chunk:
                break
            sizes.append(len(chunk))
        fs.close(handle)

        assert sizes == [8, 8, 8, 8, 3]
        assert handle.closed is True

    def test_open_failure_raises(self, fs, engine):
        """Test that a failed open propagates its error."""
        engine.script.code = 404
        with pytest.raises(ResponseError):
            fs.open("http://host/missing")

    def test_stat_is_synthetic(self, fs, engine):
        """Test that stat on a URL never touches the network."""
        result = fs.stat("https://host/conf")
        assert result == SyntheticStat(st_blksize=8192)
        assert result.is_regular_file is True
        assert result.block_size == 8192
        assert stat.S_ISREG(result.st_mode)
        assert engine.handles == []

    def test_lstat_is_synthetic(self, fs):
        """Test that lstat matches stat for URLs."""
        assert fs.lstat("ftp://host/conf") == fs.stat("ftp://host/conf")

    def test_fstat(self, fs):
        """Test fstat on a URL handle and on the fake descriptor."""
        handle = fs.open("http://host/conf")
        assert fs.fstat(handle).is_regular_file is True
        assert fs.fstat(URLCONF_FILENO).block_size == 8192

    def test_configured_block_size(self, engine, tracing):
        """Test that the block size comes from configuration."""
        fetcher = UrlFetcher(ConfUrlConfig(block_size=4096), engine=engine, tracing=tracing)
        fs = UrlConfigFS(fetcher)
        assert fs.stat("http://host/conf").st_blksize == 4096

    def test_real_files_fall_through(self, fs, tmp_path):
        """Test that ordinary paths use the real filesystem."""
        conf = tmp_path / "local.conf"
        conf.write_bytes(b"ServerName local\n")

        fd = fs.open(str(conf))
        assert isinstance(fd, int)
        assert fs.read(fd, 100) == b"ServerName local\n"
        assert fs.fstat(fd).st_size == 17
        fs.close(fd)

        assert fs.stat(str(conf)).st_size == 17
        assert fs.lstat(str(conf)).st_size == 17

    def test_missing_real_file(self, fs, tmp_path):
        """Test that errors for ordinary paths are the OS errors."""
        with pytest.raises(FileNotFoundError):
            fs.open(str(tmp_path / "missing.conf"))

    def test_handles_without_tls(self, make_engine, tracing):
        """Test that TLS schemes are left alone without TLS support."""
        engine = make_engine(EngineFeatures(ssl=False, zlib=True))
        fs = UrlConfigFS(UrlFetcher(engine=engine, tracing=tracing))
        assert fs.handles("http://host/conf") is True
        assert fs.handles("https://host/conf") is False
        assert fs.handles("ftps://host/conf") is False


class TestFSRegistry:
    """Tests for prefix registration."""

    def test_register_and_lookup(self, fs):
        """Test case-insensitive lookup by prefix."""
        registry = FSRegistry()
        registry.register("https://", fs)
        assert registry.lookup("HTTPS://host/conf") is fs
        assert registry.lookup("/etc/proftpd.conf") is None

    def test_duplicate_register(self, fs):
        """Test that a prefix can only be registered once."""
        registry = FSRegistry()
        registry.register("ftp://", fs)
        with pytest.raises(FileExistsError):
            registry.register("ftp://", fs)

    def test_unregister_missing(self):
        """Test that unregistering an unknown prefix raises."""
        with pytest.raises(FileNotFoundError):
            FSRegistry().unregister("ftp://")


class TestConfUrlModule:
    """Tests for the registration lifecycle."""

    def test_init_registers_all_schemes(self, fetcher):
        """Test that init registers one prefix per scheme."""
        registry = FSRegistry()
        module = ConfUrlModule(registry, fetcher)
        module.init()

        assert registry.prefixes == list(SUPPORTED_SCHEMES)
        assert registry.lookup("file:///etc/proftpd.conf") is module.fs

    def test_postparse_unregisters_and_disables_tracing(self, fetcher, tracing):
        """Test the end-of-parse cleanup."""
        registry = FSRegistry()
        module = ConfUrlModule(registry, fetcher)
        module.init()
        tracing.enable()

        module.on_postparse()

        assert registry.prefixes == []
        assert tracing.enabled is False

    def test_restart_registers_again(self, fetcher):
        """Test that a restart re-registers the filesystems."""
        registry = FSRegistry()
        module = ConfUrlModule(registry, fetcher)
        module.init()
        module.on_postparse()
        module.on_restart()
        assert registry.prefixes == list(SUPPORTED_SCHEMES)

    def test_register_stops_at_conflict(self, fetcher, fs):
        """Test that registration stops at the first taken prefix."""
        registry = FSRegistry()
        registry.register("ftps://", fs)
        module = ConfUrlModule(registry, fetcher)
        module.init()
        assert registry.prefixes == ["ftps://", "https://", "http://"]

    def test_unload(self, fetcher, engine):
        """Test that unloading unregisters and closes the transport."""
        registry = FSRegistry()
        module = ConfUrlModule(registry, fetcher)
        module.init()
        module.unload()
        assert registry.prefixes == []
        assert engine.closed is True

    def test_hooks_through_registry(self, fetcher, engine):
        """Test a host-style open through the registry."""
        engine.script.chunks = [b"Port 2121\n"]
        registry = FSRegistry()
        ConfUrlModule(registry, fetcher).init()

        path = "https://host/proftpd.conf?tracing=off"
        fs = registry.lookup(path)
        handle = fs.open(path)
        assert fs.read(handle, 8192) == b"Port 2121\n"
        fs.close(handle)
        assert os.path.basename(engine.last_request.url) == "proftpd.conf"
