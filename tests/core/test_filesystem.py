"""
Unit tests for filesystem module.

Tests archive format detection, idempotent extraction and tree moves.
"""

from pathlib import Path

import pytest

from dfupack.core.exceptions import CorruptOrUnsupported
from dfupack.core.filesystem import (
    ArchiveFormat,
    absolute_path,
    extract,
    is_relative_to,
    move_tree,
)


class TestArchiveFormat:
    """Test ArchiveFormat.from_filename()."""

    def test_gzip(self):
        assert ArchiveFormat.from_filename("dfu-util-0.11.tar.gz") is ArchiveFormat.GZIP_TAR

    def test_bzip2(self):
        assert ArchiveFormat.from_filename("libusb-1.0.22.tar.bz2") is ArchiveFormat.BZIP2_TAR

    def test_unknown(self):
        """Test unknown extensions are rejected."""
        with pytest.raises(ValueError, match="Unsupported archive format"):
            ArchiveFormat.from_filename("libusb-1.0.22.zip")


class TestExtract:
    """Test extract()."""

    def test_extract_gzip(self, tmp_path, tarball):
        """Test gzip tarball extracts next to the archive."""
        archive = tarball(
            tmp_path / "tool-1.0.0.tar.gz", {"tool-1.0.0/configure": "#!/bin/sh\n"}
        )

        folder = extract(archive, "tool-1.0.0")

        assert folder == tmp_path / "tool-1.0.0"
        assert (folder / "configure").read_text() == "#!/bin/sh\n"

    def test_extract_bzip2(self, tmp_path, tarball):
        """Test bzip2 tarball extraction."""
        archive = tarball(
            tmp_path / "libusb-1.0.22.tar.bz2",
            {"libusb-1.0.22/configure": "#!/bin/sh\n"},
            mode="w:bz2",
        )

        folder = extract(archive, "libusb-1.0.22")

        assert (folder / "configure").exists()

    def test_extract_to_destination(self, tmp_path, tarball):
        """Test extraction into an explicit destination."""
        archive = tarball(tmp_path / "a" / "tool-1.0.0.tar.gz", {"tool-1.0.0/README": "x"})

        folder = extract(archive, "tool-1.0.0", destination=tmp_path / "b")

        assert folder == tmp_path / "b" / "tool-1.0.0"
        assert folder.is_dir()

    def test_existing_folder_is_not_reextracted(self, tmp_path, tarball):
        """Test the extracted folder acts as the idempotence marker."""
        archive = tarball(tmp_path / "tool-1.0.0.tar.gz", {"tool-1.0.0/README": "new"})
        folder = tmp_path / "tool-1.0.0"
        folder.mkdir()
        (folder / "README").write_text("local edit")

        extract(archive, "tool-1.0.0")

        assert (folder / "README").read_text() == "local edit"

    def test_existing_folder_without_archive(self, tmp_path):
        """Test an extracted folder is enough even if the archive is gone."""
        (tmp_path / "tool-1.0.0").mkdir()

        folder = extract(tmp_path / "tool-1.0.0.tar.gz", "tool-1.0.0")

        assert folder == tmp_path / "tool-1.0.0"

    def test_corrupt_archive(self, tmp_path):
        """Test a non-tar file raises CorruptOrUnsupported."""
        archive = tmp_path / "tool-1.0.0.tar.gz"
        archive.write_bytes(b"this is not a tarball")

        with pytest.raises(CorruptOrUnsupported):
            extract(archive, "tool-1.0.0")

    def test_missing_archive(self, tmp_path):
        with pytest.raises(CorruptOrUnsupported, match="archive not found"):
            extract(tmp_path / "tool-1.0.0.tar.gz", "tool-1.0.0")

    def test_unsupported_format(self, tmp_path):
        archive = tmp_path / "tool-1.0.0.zip"
        archive.write_bytes(b"PK")

        with pytest.raises(CorruptOrUnsupported, match="Unsupported archive format"):
            extract(archive, "tool-1.0.0")

    def test_missing_expected_folder(self, tmp_path, tarball):
        """Test an archive with a different top-level folder is rejected."""
        archive = tarball(tmp_path / "tool-1.0.0.tar.gz", {"other/README": "x"})

        with pytest.raises(CorruptOrUnsupported, match="expected folder"):
            extract(archive, "tool-1.0.0")

    def test_path_traversal_rejected(self, tmp_path, tarball):
        """Test members escaping the destination are rejected."""
        archive = tarball(
            tmp_path / "src" / "evil.tar.gz", {"../../escape.txt": "x"}
        )

        with pytest.raises(CorruptOrUnsupported, match="traversal"):
            extract(archive, "evil")

        assert not (tmp_path / "escape.txt").exists()


class TestPathUtilities:
    """Test absolute_path(), is_relative_to() and move_tree()."""

    def test_absolute_path(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert absolute_path("build") == tmp_path / "build"
        assert absolute_path("dist/../out") == tmp_path / "out"
        assert absolute_path(Path("/opt/pkgs")) == Path("/opt/pkgs")

    def test_absolute_path_keeps_symlinks(self, tmp_path, monkeypatch):
        """Test a symlinked directory is not replaced by its target."""
        (tmp_path / "real").mkdir()
        (tmp_path / "link").symlink_to(tmp_path / "real")
        monkeypatch.chdir(tmp_path)

        assert absolute_path("link/base") == tmp_path / "link" / "base"

    def test_is_relative_to(self, tmp_path):
        assert is_relative_to(tmp_path / "pkg" / "bin", tmp_path / "pkg")
        assert not is_relative_to(tmp_path / "other", tmp_path / "pkg")

    def test_move_tree(self, tmp_path):
        """Test a tree is moved with its contents."""
        source = tmp_path / "prefix"
        (source / "bin").mkdir(parents=True)
        (source / "bin" / "tool").write_text("binary")

        result = move_tree(source, tmp_path / "moved" / "prefix")

        assert result == tmp_path / "moved" / "prefix"
        assert (result / "bin" / "tool").read_text() == "binary"
        assert not source.exists()

    def test_move_tree_existing_destination(self, tmp_path):
        """Test moving onto an existing path is refused."""
        (tmp_path / "prefix").mkdir()
        (tmp_path / "taken").mkdir()

        with pytest.raises(FileExistsError):
            move_tree(tmp_path / "prefix", tmp_path / "taken")

    def test_move_tree_missing_source(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            move_tree(tmp_path / "missing", tmp_path / "dest")
