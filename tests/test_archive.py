"""Tests for archive detection and extraction."""

import gzip
import io
import os
import tarfile
import zipfile

import lz4.frame
import pytest

from afx.archive import (
    extract,
    format_by_extension,
    is_archive,
    is_executable,
    unarchive,
    unarchive_sniffed,
)
from afx.errors import FetchError


def make_tar(path, files, mode="w:gz", fileobj=None):
    with tarfile.open(path if fileobj is None else None, mode, fileobj=fileobj) as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))


class TestFormatByExtension:
    def test_known_suffixes(self):
        assert format_by_extension("tool.tar.gz") == "tar.gz"
        assert format_by_extension("tool.tgz") == "tar.gz"
        assert format_by_extension("tool.tar.xz") == "tar.xz"
        assert format_by_extension("tool.tar.lz4") == "tar.lz4"
        assert format_by_extension("tool.zip") == "zip"
        assert format_by_extension("tool.gz") == "gz"

    def test_unknown_suffix(self):
        assert format_by_extension("tool_linux_amd64") is None
        assert format_by_extension("tool.exe") is None


class TestUnarchive:
    """Unpacking release assets into a package home."""

    def test_tar_gz_is_extracted_and_removed(self, temp_dir):
        archive = temp_dir / "tool.tar.gz"
        make_tar(archive, {"tool/bin/tool": b"#!/bin/sh\n"})

        unarchive(archive, temp_dir, "tool")

        assert (temp_dir / "tool" / "bin" / "tool").read_bytes() == b"#!/bin/sh\n"
        assert not archive.exists()

    def test_tar_lz4(self, temp_dir):
        archive = temp_dir / "tool.tar.lz4"
        with lz4.frame.open(archive, "wb") as f:
            make_tar(None, {"tool": b"binary"}, mode="w", fileobj=f)

        unarchive(archive, temp_dir, "tool")

        assert (temp_dir / "tool").read_bytes() == b"binary"

    def test_zip_keeps_permissions(self, temp_dir):
        archive = temp_dir / "tool.zip"
        with zipfile.ZipFile(archive, "w") as zf:
            info = zipfile.ZipInfo("tool")
            info.external_attr = 0o755 << 16
            zf.writestr(info, b"binary")

        unarchive(archive, temp_dir, "tool")

        assert is_executable(temp_dir / "tool")

    def test_single_gzip_file(self, temp_dir):
        archive = temp_dir / "tool.gz"
        archive.write_bytes(gzip.compress(b"binary"))

        unarchive(archive, temp_dir, "tool")

        assert (temp_dir / "tool").read_bytes() == b"binary"
        assert is_executable(temp_dir / "tool")

    def test_single_gzip_file_named_after_binary(self, temp_dir):
        archive = temp_dir / "jq-linux-amd64.gz"
        archive.write_bytes(gzip.compress(b"jq binary"))

        unarchive(archive, temp_dir, "jq")

        assert sorted(os.listdir(temp_dir)) == ["jq"]
        assert (temp_dir / "jq").read_bytes() == b"jq binary"
        assert is_executable(temp_dir / "jq")

    def test_bare_binary_is_renamed(self, temp_dir):
        asset = temp_dir / "tool_linux_amd64"
        asset.write_bytes(b"\x7fELF")

        unarchive(asset, temp_dir, "tool")

        assert not asset.exists()
        assert (temp_dir / "tool").read_bytes() == b"\x7fELF"
        assert is_executable(temp_dir / "tool")

    def test_overwrites_existing_files(self, temp_dir):
        (temp_dir / "tool").write_bytes(b"old")
        archive = temp_dir / "tool.tar.gz"
        make_tar(archive, {"tool": b"new"})

        unarchive(archive, temp_dir, "tool")

        assert (temp_dir / "tool").read_bytes() == b"new"

    def test_path_traversal_rejected(self, temp_dir):
        home = temp_dir / "home"
        home.mkdir()
        archive = home / "evil.tar.gz"
        make_tar(archive, {"../escaped": b"x"})

        with pytest.raises(FetchError, match="outside"):
            extract(archive, home, "tar.gz")
        assert not (temp_dir / "escaped").exists()

    def test_corrupt_archive(self, temp_dir):
        archive = temp_dir / "tool.tar.gz"
        archive.write_bytes(b"not a tarball")

        with pytest.raises(FetchError, match="failed to unarchive"):
            unarchive(archive, temp_dir, "tool")


class TestUnarchiveSniffed:
    """HTTP downloads are only extracted when their content is an archive."""

    def test_archive_extracted_in_place(self, temp_dir):
        download = temp_dir / "payload.tar.gz"
        make_tar(download, {"script.sh": b"echo hi\n"})

        assert is_archive(download)
        assert unarchive_sniffed(download) is True
        assert (temp_dir / "script.sh").exists()

    def test_plain_file_left_alone(self, temp_dir):
        download = temp_dir / "script.sh"
        download.write_text("echo hi\n")

        assert unarchive_sniffed(download) is False
        assert os.listdir(temp_dir) == ["script.sh"]
