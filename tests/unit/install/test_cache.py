import json

import pytest

from bundleguard.exceptions import MetadataWriteError
from bundleguard.install.cache import InstallMetadataCache


class TestInstallMetadataCache:
    """Test the installed-version record."""

    @pytest.fixture
    def cache(self, tmp_path):
        return InstallMetadataCache(tmp_path / "tool" / "metadata.json")

    def test_missing_file(self, cache):
        assert cache.read() == {}
        assert cache.installed_version() is None
        assert not cache.is_up_to_date("7.9.0")

    def test_write_then_read(self, cache):
        cache.write("7.9.0")

        assert json.loads(cache.metadata_file.read_text()) == {"version": "7.9.0"}
        assert cache.installed_version() == "7.9.0"
        assert cache.is_up_to_date("7.9.0")
        assert not cache.is_up_to_date("8.0.0")

    def test_corrupt_file(self, cache):
        cache.metadata_file.parent.mkdir(parents=True)
        cache.metadata_file.write_text("{broken")

        assert cache.read() == {}
        assert not cache.is_up_to_date("7.9.0")

    def test_non_mapping_contents(self, cache):
        cache.metadata_file.parent.mkdir(parents=True)
        cache.metadata_file.write_text(json.dumps(["7.9.0"]))

        assert cache.installed_version() is None

    def test_non_string_version(self, cache):
        cache.metadata_file.parent.mkdir(parents=True)
        cache.metadata_file.write_text(json.dumps({"version": 7}))

        assert cache.installed_version() is None

    def test_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where a directory should be")
        cache = InstallMetadataCache(blocker / "metadata.json")

        with pytest.raises(MetadataWriteError, match="Failed to write to metadata.json"):
            cache.write("7.9.0")
