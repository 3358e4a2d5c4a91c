"""Tests for the Compression facade one-shot transform."""

import asyncio
import gc
import gzip
import zlib
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY
from pydeflate.compression import Compression
from pydeflate.config import Config
from pydeflate.errors import (
    CompressionError,
    InvalidTypeError,
    SettingsError,
    UnknownVariantError,
)
from pydeflate.logger import Logger


ROUND_TRIPS = [
    ("deflate", "inflate"),
    ("deflate_raw", "inflate_raw"),
    ("gzip", "gunzip"),
    ("gzip", "unzip"),
    ("deflate", "unzip"),
]

PAYLOADS = [b"", b"a", b"test 123 test", bytes(range(256)) * 64]


def make(variant=None, **kwargs):
    """Create a facade that only logs errors."""
    return Compression(variant, logger=Logger(level="ERROR"), **kwargs)


def sample_value(name, variant, mode):
    value = REGISTRY.get_sample_value(name, {"variant": variant, "mode": mode})
    return value or 0.0


class TestOneShot:
    """Tests for compress()."""

    @pytest.mark.asyncio
    async def test_gzip_text(self):
        """Test that gzip output of text decodes to the same bytes."""
        deferred = make("gzip").compress("test 123 test")
        result = await deferred
        assert deferred.signal == "data"
        assert gzip.decompress(result) == b"test 123 test"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("compressor,decompressor", ROUND_TRIPS)
    @pytest.mark.parametrize("payload", PAYLOADS)
    async def test_round_trip(self, compressor, decompressor, payload):
        """Test decompress(compress(data)) == data."""
        compressed = await make(compressor).compress(payload)
        assert await make(decompressor).compress(compressed) == payload

    @pytest.mark.asyncio
    async def test_invalid_input_rejects_deferred(self):
        """Test that corrupt input rejects instead of raising."""
        deferred = make("inflate").compress(b"this is not deflate data")
        with pytest.raises(CompressionError) as exc_info:
            await deferred
        assert deferred.signal == "error"
        assert exc_info.value.code_name == "data_error"

    @pytest.mark.asyncio
    async def test_unawaited_rejection_not_reported_to_loop(self):
        """Test that a rejected deferred nobody awaits stays quiet on collection."""
        loop = asyncio.get_running_loop()
        reported = []
        previous = loop.get_exception_handler()
        loop.set_exception_handler(lambda _, context: reported.append(context))
        try:
            deferred = make("inflate").compress(b"this is not deflate data")
            while not deferred.done():
                await asyncio.sleep(0.01)
            assert deferred.signal == "error"
            del deferred
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(previous)
        assert reported == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [123, 4.5, None, object(), ["abc"]])
    async def test_bad_type_fails_before_library_call(self, data):
        """Test that non-text, non-bytes data raises synchronously."""
        with patch("pydeflate.compression.transform") as mock_transform:
            with pytest.raises(InvalidTypeError):
                make("gzip").compress(data)
            mock_transform.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_variant_override_fails_synchronously(self):
        """Test that a bad variant override raises before scheduling."""
        with patch("pydeflate.compression.transform") as mock_transform:
            with pytest.raises(UnknownVariantError):
                make("gzip").compress("abc", {"variant": "snappy"})
            mock_transform.assert_not_called()

    def test_unknown_variant_at_construction(self):
        """Test that constructing with an unknown variant raises."""
        with pytest.raises(UnknownVariantError):
            make("zip")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["GZIP", "Gzip", "gZiP"])
    async def test_variant_case_insensitive(self, name):
        """Test that any casing resolves the same operation."""
        assert gzip.decompress(await make(name).compress(b"abc")) == b"abc"

    @pytest.mark.asyncio
    async def test_overrides_apply_to_one_call(self):
        """Test that overrides do not leak into the settings."""
        facade = make("deflate")
        result = await facade.compress(b"abc", {"variant": "gzip", "level": 1})
        assert gzip.decompress(result) == b"abc"
        assert facade.settings().variant() == "deflate"
        assert facade.settings().level() == -1

    @pytest.mark.asyncio
    async def test_settings_changes_are_used(self):
        """Test that mutated settings drive later calls."""
        facade = make("deflate")
        facade.settings().variant("deflate_raw")
        facade.settings().level(0)
        result = await facade.compress(b"abcabcabc")
        assert zlib.decompress(result, -15) == b"abcabcabc"

    @pytest.mark.asyncio
    async def test_explicit_encoding(self):
        """Test the per-call text encoding."""
        result = await make("deflate").compress("café", encoding="latin-1")
        assert zlib.decompress(result) == b"caf\xe9"

    @pytest.mark.asyncio
    async def test_calls_are_independent(self):
        """Test several concurrent one-shot calls."""
        facade = make("gzip")
        deferreds = [facade.compress(f"payload {i}") for i in range(10)]
        for i, deferred in enumerate(deferreds):
            assert gzip.decompress(await deferred) == f"payload {i}".encode()

    @pytest.mark.asyncio
    async def test_metrics_recorded(self):
        """Test that operations, bytes and failures are counted."""
        ops_before = sample_value("pydeflate_operations_total", "gunzip", "oneshot")
        failures_before = sample_value("pydeflate_failures_total", "gunzip", "oneshot")
        bytes_before = sample_value("pydeflate_bytes_out_total", "gunzip", "oneshot")

        facade = make("gunzip")
        await facade.compress(gzip.compress(b"12345"))
        with pytest.raises(CompressionError):
            await facade.compress(b"not gzip")

        assert sample_value("pydeflate_operations_total", "gunzip", "oneshot") == ops_before + 2
        assert sample_value("pydeflate_failures_total", "gunzip", "oneshot") == failures_before + 1
        assert sample_value("pydeflate_bytes_out_total", "gunzip", "oneshot") == bytes_before + 5


class TestConstruction:
    """Tests for facade construction."""

    @pytest.fixture
    def config(self, tmp_path, monkeypatch):
        monkeypatch.delenv("COMPRESSION_VARIANT", raising=False)
        monkeypatch.delenv("COMPRESSION_LEVEL", raising=False)
        return Config(str(tmp_path / "none.yaml"))

    def test_default_variant(self):
        """Test that deflate is the default variant."""
        assert make().settings().variant() == "deflate"

    def test_caller_variant_wins_over_config(self, config):
        """Test that the constructor argument is never overwritten."""
        config.set("compression", "variant", "deflate")
        assert make("gunzip", config=config).settings().variant() == "gunzip"

    def test_caller_variant_ignores_invalid_config_variant(self, config):
        """Test that a bad configured variant does not block an explicit one."""
        config.set("compression", "variant", "brotli")
        assert make("gzip", config=config).settings().variant() == "gzip"

    def test_config_variant_used_without_argument(self, config):
        """Test the configured variant as a fallback."""
        config.set("compression", "variant", "inflate_raw")
        assert make(config=config).settings().variant() == "inflate_raw"

    def test_config_seeds_settings(self, config):
        """Test that configured values reach the settings."""
        config.set("compression", "level", 2)
        config.set("compression", "strategy", "filtered")
        settings = make("gzip", config=config).settings()
        assert settings.level() == 2
        assert settings.strategy() == zlib.Z_FILTERED

    def test_encoding_from_config(self, config):
        """Test the configured text encoding."""
        config.set("compression", "encoding", "latin-1")
        assert make(config=config).encoding == "latin-1"

    def test_unknown_encoding_rejected(self):
        """Test that a bogus encoding fails at construction."""
        with pytest.raises(SettingsError):
            make(encoding="no-such-codec")

    def test_settings_owned_per_facade(self):
        """Test that facades do not share settings."""
        first, second = make(), make()
        first.settings().level(9)
        assert second.settings().level() == -1
