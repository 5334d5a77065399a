"""
Tests for copy/symlink materialization and numbered backup rotation.
"""
from pathlib import Path

import pytest

from wmgr.errors import FileSystemError
from wmgr.models import FileCopy, FileSymlink, Manifest
from wmgr.services.file_operations import (
    FileOperationConfig,
    FileOperationProcessor,
    OperationType,
    backup_path,
    list_backups,
    rotate_backups,
)

from shared import ManifestRepoFactory


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def root(tmp_path) -> Path:
    """Workspace with one checked-out repository 'tools'."""
    (tmp_path / "tools" / "ci").mkdir(parents=True)
    (tmp_path / "tools" / "ci" / "Makefile").write_text("all:\n\techo build\n")
    return tmp_path


@pytest.fixture
def processor(root) -> FileOperationProcessor:
    return FileOperationProcessor(root, FileOperationConfig(max_backups=2))


def manifest_with(copy=(), symlink=(), dest="tools") -> Manifest:
    return Manifest(repos=[ManifestRepoFactory(dest=dest, copy=list(copy), symlink=list(symlink))])


class TestBackupRotation:
    """Tests for rotate_backups."""

    def test_keeps_most_recent(self, tmp_path):
        target = tmp_path / "manifest.yml"
        for n in range(6):
            target.write_text(f"version {n}")
            rotate_backups(target, max_backups=3)

        backups = list_backups(target)
        assert [p.name for p in backups] == ["manifest.yml.bak.1", "manifest.yml.bak.2", "manifest.yml.bak.3"]
        assert [p.read_text() for p in backups] == ["version 5", "version 4", "version 3"]

    def test_nothing_to_back_up(self, tmp_path):
        assert rotate_backups(tmp_path / "absent.yml", max_backups=3) is None

    def test_disabled(self, tmp_path):
        target = tmp_path / "f.txt"
        target.write_text("x")
        assert rotate_backups(target, max_backups=0) is None
        assert list_backups(target) == []

    def test_excess_backups_pruned(self, tmp_path):
        """A lower limit than before trims the extra backups."""
        target = tmp_path / "f.txt"
        target.write_text("current")
        for index in range(1, 6):
            backup_path(target, index).write_text(f"old {index}")
        rotate_backups(target, max_backups=2)
        assert [p.read_text() for p in list_backups(target)] == ["current", "old 1"]

    def test_ignores_unrelated_files(self, tmp_path):
        target = tmp_path / "f.txt"
        target.write_text("x")
        (tmp_path / "f.txt.bak.old").write_text("keep me")
        (tmp_path / "g.txt.bak.1").write_text("keep me")
        rotate_backups(target, max_backups=1)
        assert [p.name for p in list_backups(target)] == ["f.txt.bak.1"]
        assert (tmp_path / "f.txt.bak.old").exists()

    def test_backs_up_symlink_as_link(self, tmp_path):
        target = tmp_path / "link"
        target.symlink_to("somewhere/else")
        backup = rotate_backups(target, max_backups=2)
        assert backup.is_symlink()
        assert backup.readlink() == Path("somewhere/else")


class TestCopy:
    """Tests for copy operations."""

    def test_copies_file(self, processor, root):
        results = processor.process_all_file_operations(manifest_with(copy=[FileCopy("ci/Makefile", "Makefile")]))
        assert len(results) == 1
        assert results[0].success
        assert results[0].operation_type is OperationType.COPY
        assert (root / "Makefile").read_text() == "all:\n\techo build\n"

    def test_creates_parent_directories(self, processor, root):
        processor.process_all_file_operations(manifest_with(copy=[FileCopy("ci/Makefile", "build/deep/Makefile")]))
        assert (root / "build" / "deep" / "Makefile").is_file()

    def test_identical_content_is_unchanged(self, processor, root):
        manifest = manifest_with(copy=[FileCopy("ci/Makefile", "Makefile")])
        processor.process_all_file_operations(manifest)
        again = processor.process_all_file_operations(manifest)
        assert again[0].unchanged
        assert list_backups(root / "Makefile") == []

    def test_changed_content_is_backed_up(self, processor, root):
        (root / "Makefile").write_text("local edits")
        results = processor.process_all_file_operations(manifest_with(copy=[FileCopy("ci/Makefile", "Makefile")]))
        assert results[0].backup_created.endswith("Makefile.bak.1")
        assert (root / "Makefile.bak.1").read_text() == "local edits"

    def test_existing_destination_without_backup_or_overwrite(self, root):
        (root / "Makefile").write_text("local edits")
        processor = FileOperationProcessor(root, FileOperationConfig(create_backup=False))
        results = processor.process_all_file_operations(manifest_with(copy=[FileCopy("ci/Makefile", "Makefile")]))
        assert not results[0].success
        assert "already exists" in results[0].error
        assert (root / "Makefile").read_text() == "local edits"

    def test_overwrite_without_backup(self, root):
        (root / "Makefile").write_text("local edits")
        processor = FileOperationProcessor(root, FileOperationConfig(create_backup=False, overwrite_existing=True))
        results = processor.process_all_file_operations(manifest_with(copy=[FileCopy("ci/Makefile", "Makefile")]))
        assert results[0].success
        assert list_backups(root / "Makefile") == []

    def test_missing_source(self, processor):
        results = processor.process_all_file_operations(manifest_with(copy=[FileCopy("nope.txt", "x.txt")]))
        assert not results[0].success
        assert "not a file" in results[0].error

    @pytest.mark.parametrize(
        "op",
        [FileCopy("../../etc/passwd", "stolen"), FileCopy("ci/Makefile", "../outside"), FileCopy("ci/Makefile", "/abs")],
    )
    def test_escaping_paths_rejected(self, processor, root, op):
        results = processor.process_all_file_operations(manifest_with(copy=[op]))
        assert not results[0].success
        assert not (root.parent / "outside").exists()

    def test_failure_does_not_stop_batch(self, processor, root):
        manifest = manifest_with(copy=[FileCopy("missing", "a"), FileCopy("ci/Makefile", "b")])
        results = processor.process_all_file_operations(manifest)
        assert [r.success for r in results] == [False, True]
        assert (root / "b").is_file()

    def test_dest_filter(self, processor, root):
        manifest = Manifest(
            repos=[
                ManifestRepoFactory(dest="tools", copy=[FileCopy("ci/Makefile", "one")]),
                ManifestRepoFactory(dest="other", copy=[FileCopy("x", "two")]),
            ]
        )
        results = processor.process_all_file_operations(manifest, dests=["tools"])
        assert len(results) == 1
        assert (root / "one").is_file()


class TestSymlink:
    """Tests for symlink operations."""

    def test_target_traversal_refused(self, processor, root):
        results = processor.process_all_file_operations(
            manifest_with(symlink=[FileSymlink(source="links/make", target="../tools/ci/Makefile")])
        )
        assert not results[0].success
        assert not (root / "links" / "make").is_symlink()

    def test_creates_relative_link(self, processor, root):
        results = processor.process_all_file_operations(
            manifest_with(symlink=[FileSymlink(source="Makefile", target="tools/ci/Makefile")])
        )
        assert results[0].success
        assert results[0].operation_type is OperationType.SYMLINK
        link = root / "Makefile"
        assert link.is_symlink()
        assert link.read_text() == "all:\n\techo build\n"

    def test_same_link_is_unchanged(self, processor, root):
        manifest = manifest_with(symlink=[FileSymlink(source="Makefile", target="tools/ci/Makefile")])
        processor.process_all_file_operations(manifest)
        again = processor.process_all_file_operations(manifest)
        assert again[0].unchanged

    def test_replaces_file_with_backup(self, processor, root):
        (root / "Makefile").write_text("mine")
        results = processor.process_all_file_operations(
            manifest_with(symlink=[FileSymlink(source="Makefile", target="tools/ci/Makefile")])
        )
        assert results[0].success
        assert (root / "Makefile").is_symlink()
        assert (root / "Makefile.bak.1").read_text() == "mine"

    def test_copies_run_before_symlinks(self, processor, root):
        manifest = manifest_with(
            copy=[FileCopy("ci/Makefile", "shared/Makefile")],
            symlink=[FileSymlink(source="Makefile", target="shared/Makefile")],
        )
        results = processor.process_all_file_operations(manifest)
        assert [r.operation_type for r in results] == [OperationType.COPY, OperationType.SYMLINK]
        assert (root / "Makefile").read_text() == "all:\n\techo build\n"


class TestErrorsSurface:
    def test_rotate_failure_is_filesystem_error(self, tmp_path):
        target = tmp_path / "dir-target"
        target.mkdir()
        with pytest.raises(FileSystemError):
            rotate_backups(target, max_backups=2)
