"""
Tests for the duplicate resolver.

Tests cover:
- Thumbnail deletion and marking
- Within-folder deduplication and survivor choice
- Archive-wide manifest grouping and format
"""

from pathlib import Path

from common.config import RunConfig
from common.failure_tracker import StageReport
from processors.threema.duplicates import (
    MANIFEST_EMPTY,
    duplicate_groups,
    eliminate_thumbnails,
    format_manifest,
    remove_duplicates_within_folder,
    write_manifest,
)
from processors.threema.models import FileEntry


def make_file(directory: Path, filename: str, content: bytes = b"x") -> FileEntry:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_bytes(content)
    base, _, extension = filename.partition(".")
    return FileEntry(full_path=path, directory=directory, base_name=base, extension=extension, size=len(content))


def fingerprinted(entry: FileEntry, digest: str, rank) -> FileEntry:
    entry.fingerprint = digest
    entry.duplicate_rank = rank
    return entry


class TestEliminateThumbnails:
    """Tests for eliminate_thumbnails()."""

    def test_thumbnail_deleted_when_original_exists(self, tmp_path):
        media = make_file(tmp_path, "media_uid001_ABCD1234")
        thumb = make_file(tmp_path, "thumbnail_uid001_ABCD1234")
        report = StageReport("t")

        survivors = eliminate_thumbnails([media, thumb], RunConfig(log_to=""), report)

        assert survivors == [media]
        assert not thumb.full_path.exists()
        assert media.full_path.exists()
        assert report.count("delete") == 1

    def test_original_extension_is_ignored(self, tmp_path):
        media = make_file(tmp_path, "media_uid001.jpg")
        thumb = make_file(tmp_path, "thumbnail_uid001")
        assert eliminate_thumbnails([media, thumb], RunConfig(log_to="")) == [media]

    def test_thumbnail_kept_without_original(self, tmp_path):
        thumb = make_file(tmp_path, "thumbnail_uid001_ABCD1234")
        assert eliminate_thumbnails([thumb], RunConfig(log_to="")) == [thumb]
        assert thumb.full_path.exists()

    def test_thumbnail_marked_instead_of_deleted(self, tmp_path):
        media = make_file(tmp_path, "media_uid001_ABCD1234")
        thumb = make_file(tmp_path, "thumbnail_uid001_ABCD1234")
        config = RunConfig(log_to="", delete_thumbnail_if_original_exists=False)

        survivors = eliminate_thumbnails([media, thumb], config)

        assert survivors == [media, thumb]
        assert thumb.full_path.exists()
        assert thumb.thumbnail_marked
        assert thumb.working_name == "~_thumbnail_uid001_ABCD1234"
        assert not media.thumbnail_marked

    def test_custom_thumbnail_words(self, tmp_path):
        media = make_file(tmp_path, "full_1")
        thumb = make_file(tmp_path, "small_1")
        config = RunConfig(log_to="", thumbnail_find="small", thumbnail_original="full")
        assert eliminate_thumbnails([media, thumb], config) == [media]


class TestRemoveDuplicatesWithinFolder:
    """Tests for remove_duplicates_within_folder()."""

    def test_keeps_lowest_rank(self, tmp_path):
        first = fingerprinted(make_file(tmp_path, "a.jpg"), "f1", (0, "a"))
        second = fingerprinted(make_file(tmp_path, "1_a.jpg"), "f1", (1, "a"))
        report = StageReport("t")

        survivors = remove_duplicates_within_folder([second, first], report)

        assert survivors == [first]
        assert first.full_path.exists()
        assert not second.full_path.exists()
        assert report.count("delete") == 1

    def test_rank_compares_counter_before_name(self, tmp_path):
        low_counter = fingerprinted(make_file(tmp_path, "z.jpg"), "f1", (0, "z"))
        high_counter = fingerprinted(make_file(tmp_path, "1_a.jpg"), "f1", (1, "a"))
        assert remove_duplicates_within_folder([high_counter, low_counter]) == [low_counter]

    def test_other_folders_untouched(self, tmp_path):
        one = fingerprinted(make_file(tmp_path / "one", "a.jpg"), "f1", (0, "a"))
        two = fingerprinted(make_file(tmp_path / "two", "a.jpg"), "f1", (0, "a"))
        assert remove_duplicates_within_folder([one, two]) == [one, two]
        assert two.full_path.exists()

    def test_unfingerprinted_entries_survive(self, tmp_path):
        one = make_file(tmp_path, "a.jpg")
        two = make_file(tmp_path, "b.jpg")
        assert remove_duplicates_within_folder([one, two]) == [one, two]

    def test_uses_current_path(self, tmp_path):
        first = fingerprinted(make_file(tmp_path / "old", "a"), "f1", (0, "a"))
        moved = make_file(tmp_path / "new", "a.jpg")
        first.final_path = moved.full_path
        other = fingerprinted(make_file(tmp_path / "new", "b.jpg"), "f1", (0, "b"))

        survivors = remove_duplicates_within_folder([first, other])

        assert survivors == [first]
        assert not other.full_path.exists()


class TestManifest:
    """Tests for the archive-wide manifest."""

    def test_groups_across_folders(self, tmp_path):
        a = fingerprinted(make_file(tmp_path / "one", "a.jpg"), "f1", (0, "a"))
        b = fingerprinted(make_file(tmp_path / "two", "b.jpg"), "f2", (0, "b"))
        c = fingerprinted(make_file(tmp_path / "two", "c.jpg"), "f1", (0, "c"))
        d = fingerprinted(make_file(tmp_path, "d.jpg"), "f3", (0, "d"))

        groups = duplicate_groups([a, b, c, d])

        assert groups == [[a, c]]

    def test_members_ordered_by_rank(self, tmp_path):
        a = fingerprinted(make_file(tmp_path, "x.jpg"), "f1", (1, "x"))
        b = fingerprinted(make_file(tmp_path / "sub", "x.jpg"), "f1", (0, "x"))
        assert duplicate_groups([a, b]) == [[b, a]]

    def test_format(self, tmp_path):
        a = fingerprinted(make_file(tmp_path, "a.jpg"), "f1", (0, "a"))
        b = fingerprinted(make_file(tmp_path, "b.jpg"), "f1", (0, "b"))
        c = fingerprinted(make_file(tmp_path, "c.png"), "f2", (0, "c"))
        d = fingerprinted(make_file(tmp_path, "d.png"), "f2", (0, "d"))
        text = format_manifest([[a, b], [c, d]])
        assert text == f"{a.full_path}\n{b.full_path}\n\n{c.full_path}\n{d.full_path}"

    def test_empty_manifest(self, tmp_path):
        manifest = tmp_path / "_duplicates.txt"
        assert write_manifest([], manifest) == []
        assert manifest.read_text(encoding="utf-8") == MANIFEST_EMPTY
