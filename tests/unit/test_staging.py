"""Tests for the staging fetcher and archive unpacking."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import pytest

from toolfetcher.core.staging import StagingFetcher, is_archive, unpack_archive
from toolfetcher.errors import DownloadError, ExtractionError

URL = "https://example.invalid/download"


@pytest.fixture
def stager(fake_client, staging_dir: Path) -> StagingFetcher:
    return StagingFetcher(fake_client, staging_dir)


def _scratch_dirs(staging_dir: Path) -> list[Path]:
    return list(staging_dir.iterdir()) if staging_dir.exists() else []


class TestIsArchive:
    @pytest.mark.parametrize(
        "name",
        ["a.zip", "A.ZIP", "a.tar", "a.tar.gz", "a.tgz", "a.tar.bz2", "a.tbz2", "a.tar.xz", "a.txz"],
    )
    def test_archives(self, name):
        assert is_archive(name)

    @pytest.mark.parametrize("name", ["a.exe", "a.yml", "a.gz", "zipfile", "a.7z"])
    def test_non_archives(self, name):
        assert not is_archive(name)


class TestStage:
    def test_zip_is_unpacked(self, stager, fake_client, staging_dir, build_zip, tree_of):
        fake_client.files[URL] = build_zip({"tool/bin/x": b"x", "tool/README": b"r"})
        with stager.stage(URL, "tool.zip", extract=True) as staged:
            assert staged.extracted is True
            assert tree_of(staged.payload_dir) == {"tool/bin/x": b"x", "tool/README": b"r"}
            assert staged.downloaded_file.name == "tool.zip"
        assert _scratch_dirs(staging_dir) == []

    def test_tar_gz_is_unpacked(self, stager, fake_client, build_tar_gz, tree_of):
        fake_client.files[URL] = build_tar_gz({"a.txt": b"a", "d/b.txt": b"b"})
        with stager.stage(URL, "tool.tar.gz", extract=True) as staged:
            assert tree_of(staged.payload_dir) == {"a.txt": b"a", "d/b.txt": b"b"}

    def test_extract_disabled_keeps_archive(self, stager, fake_client, build_zip, tree_of):
        data = build_zip({"x": b"x"})
        fake_client.files[URL] = data
        with stager.stage(URL, "tool.zip", extract=False) as staged:
            assert staged.extracted is False
            assert tree_of(staged.payload_dir) == {"tool.zip": data}

    def test_plain_file_is_the_payload(self, stager, fake_client, tree_of):
        fake_client.files[URL] = b"rule: 1\n"
        with stager.stage(URL, "rule.yml", extract=True) as staged:
            assert staged.extracted is False
            assert tree_of(staged.payload_dir) == {"rule.yml": b"rule: 1\n"}

    def test_download_failure_cleans_up(self, stager, staging_dir):
        with pytest.raises(DownloadError):
            with stager.stage(URL, "missing.zip", extract=True):
                pass  # pragma: no cover
        assert _scratch_dirs(staging_dir) == []

    def test_corrupt_archive_cleans_up(self, stager, fake_client, staging_dir):
        fake_client.files[URL] = b"this is not a zip"
        with pytest.raises(ExtractionError):
            with stager.stage(URL, "tool.zip", extract=True):
                pass  # pragma: no cover
        assert _scratch_dirs(staging_dir) == []

    def test_error_inside_block_cleans_up(self, stager, fake_client, staging_dir):
        fake_client.files[URL] = b"data"
        with pytest.raises(RuntimeError):
            with stager.stage(URL, "f.bin", extract=True):
                raise RuntimeError("boom")
        assert _scratch_dirs(staging_dir) == []


class TestUnpackArchive:
    def test_path_traversal_rejected(self, tmp_dir: Path):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("../evil.txt", b"pwned")
        archive = tmp_dir / "evil.zip"
        archive.write_bytes(buf.getvalue())

        with pytest.raises(ExtractionError):
            unpack_archive(archive, tmp_dir / "out")
        assert not (tmp_dir / "evil.txt").exists()

    def test_absolute_member_rejected(self, tmp_dir: Path, build_zip):
        archive = tmp_dir / "abs.zip"
        archive.write_bytes(build_zip({"/etc/evil": b"x"}))
        with pytest.raises(ExtractionError):
            unpack_archive(archive, tmp_dir / "out")

    def test_empty_archive_rejected(self, tmp_dir: Path, build_zip):
        archive = tmp_dir / "empty.zip"
        archive.write_bytes(build_zip({}))
        with pytest.raises(ExtractionError, match="no files"):
            unpack_archive(archive, tmp_dir / "out")

    def test_unsupported_format(self, tmp_dir: Path):
        archive = tmp_dir / "a.rar"
        archive.write_bytes(b"x")
        with pytest.raises(ExtractionError):
            unpack_archive(archive, tmp_dir / "out")

    def test_directory_entries(self, tmp_dir: Path, tree_of):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("root/", b"")
            zf.writestr("root/sub/file.txt", b"content")
        archive = tmp_dir / "dirs.zip"
        archive.write_bytes(buf.getvalue())
        unpack_archive(archive, tmp_dir / "out")
        assert tree_of(tmp_dir / "out") == {"root/sub/file.txt": b"content"}
