"""
Tests for the content hasher.

Tests cover:
- SHA-256 fingerprints
- Only files that can have a twin get a fingerprint
- Unreadable files are reported, not raised
"""

import hashlib

from common.failure_tracker import StageReport
from processors.threema.hashing import compute_fingerprints, fingerprint, quick_digest
from processors.threema.models import FileEntry


def make_file(directory, filename, content):
    path = directory / filename
    path.write_bytes(content)
    return FileEntry(full_path=path, directory=directory, base_name=filename, extension="")


class TestFingerprint:
    """Tests for fingerprint() and quick_digest()."""

    def test_matches_sha256(self, tmp_path):
        entry = make_file(tmp_path, "a", b"hello world")
        assert fingerprint(entry.full_path) == hashlib.sha256(b"hello world").hexdigest()

    def test_quick_digest_depends_on_content(self, tmp_path):
        a = make_file(tmp_path, "a", b"one")
        b = make_file(tmp_path, "b", b"two")
        c = make_file(tmp_path, "c", b"one")
        assert quick_digest(a.full_path) != quick_digest(b.full_path)
        assert quick_digest(a.full_path) == quick_digest(c.full_path)
        assert len(quick_digest(a.full_path)) == 32


class TestComputeFingerprints:
    """Tests for compute_fingerprints()."""

    def test_identical_files_share_fingerprint(self, tmp_path):
        a = make_file(tmp_path, "a", b"same content")
        b = make_file(tmp_path, "b", b"same content")
        assert compute_fingerprints([a, b]) == 2
        assert a.fingerprint == b.fingerprint == hashlib.sha256(b"same content").hexdigest()

    def test_unique_sizes_are_not_hashed(self, tmp_path):
        a = make_file(tmp_path, "a", b"short")
        b = make_file(tmp_path, "b", b"much longer content")
        assert compute_fingerprints([a, b]) == 0
        assert a.fingerprint is None
        assert b.fingerprint is None

    def test_same_size_different_content(self, tmp_path):
        a = make_file(tmp_path, "a", b"aaaa")
        b = make_file(tmp_path, "b", b"bbbb")
        compute_fingerprints([a, b])
        assert a.fingerprint is None
        assert b.fingerprint is None

    def test_reads_current_path(self, tmp_path):
        a = make_file(tmp_path, "a", b"payload")
        b = make_file(tmp_path, "b", b"payload")
        moved = tmp_path / "moved"
        a.full_path.rename(moved)
        a.final_path = moved
        compute_fingerprints([a, b])
        assert a.fingerprint == b.fingerprint is not None

    def test_missing_file_is_reported(self, tmp_path):
        a = make_file(tmp_path, "a", b"payload")
        b = make_file(tmp_path, "b", b"payload")
        b.full_path.unlink()
        report = StageReport("t")
        compute_fingerprints([a, b], report)
        assert b.fingerprint is None
        assert a.fingerprint is None
        assert len(report.failures) == 1
