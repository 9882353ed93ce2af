"""
Tests for the identity index built from contacts and groups tables.

Tests cover:
- Contact display names (token de-duplication, empty parts)
- Group identity keys and display names
- Malformed rows and repeated identities
"""

import pytest

from common.failure_tracker import StageReport
from processors.threema.identities import (
    build_identity_index,
    contact_identity,
    group_identity,
)


class TestContactIdentity:
    """Tests for contact rows."""

    def test_display_name_drops_empty_nickname(self):
        """Should join last name, first name and identity."""
        contact = contact_identity(
            {"lastname": "Muster", "firstname": "Max", "nick_name": "", "identity": "ABCD1234"}
        )
        assert contact.identity == "ABCD1234"
        assert contact.display_name == "Muster Max ABCD1234"
        assert contact.kind == "contact"
        assert contact.secondary_id is None

    def test_display_name_deduplicates_case_insensitively(self):
        """Should keep the first spelling of a repeated token."""
        contact = contact_identity(
            {"lastname": "Muster", "firstname": "Max", "nick_name": "max", "identity": "ABCD1234"}
        )
        assert contact.display_name == "Muster Max ABCD1234"

    def test_multi_word_names(self):
        """Should split names on spaces and normalize whitespace."""
        contact = contact_identity(
            {"lastname": "van  Dijk", "firstname": "Anna Lena", "nick_name": "Lena", "identity": "ZZZZ9999"}
        )
        assert contact.display_name == "van Dijk Anna Lena ZZZZ9999"

    def test_unsafe_characters_are_sanitized(self):
        """Should not produce path separators in display names."""
        contact = contact_identity(
            {"lastname": "A/B", "firstname": "", "nick_name": "", "identity": "ABCD1234"}
        )
        assert "/" not in contact.display_name

    def test_missing_identity_raises(self):
        """Should reject rows without identity."""
        with pytest.raises(ValueError):
            contact_identity({"lastname": "Muster", "firstname": "Max", "nick_name": ""})


class TestGroupIdentity:
    """Tests for group rows."""

    def test_key_and_display_name(self):
        """Should key groups by id and creator."""
        group = group_identity({"groupname": "Team", "id": "99", "creator": "ABCD1234"})
        assert group.identity == "99-ABCD1234"
        assert group.display_name == "Team 99"
        assert group.secondary_id == "99"

    def test_blank_group_name_falls_back_to_key(self):
        """Should use the identity key when the group has no name."""
        group = group_identity({"groupname": "   ", "id": "99", "creator": "ABCD1234"})
        assert group.display_name == "99-ABCD1234"

    def test_missing_creator_raises(self):
        """Should reject rows without creator."""
        with pytest.raises(ValueError):
            group_identity({"groupname": "Team", "id": "99", "creator": ""})


class TestBuildIdentityIndex:
    """Tests for the combined index."""

    def test_index_holds_contacts_and_groups(self):
        """Should key every identity by its identity key."""
        index = build_identity_index(
            [{"lastname": "Muster", "firstname": "Max", "nick_name": "", "identity": "ABCD1234"}],
            [{"groupname": "Team", "id": "99", "creator": "ABCD1234"}],
        )
        assert set(index) == {"ABCD1234", "99-ABCD1234"}
        assert index["99-ABCD1234"].display_name == "Team 99"

    def test_index_is_read_only(self):
        """Should not allow modification after construction."""
        index = build_identity_index([], [])
        with pytest.raises(TypeError):
            index["X"] = None

    def test_malformed_rows_are_skipped(self):
        """Should report malformed rows and keep the others."""
        report = StageReport("identities")
        index = build_identity_index(
            [
                {"lastname": "Nobody", "firstname": "", "nick_name": "", "identity": ""},
                {"lastname": "Muster", "firstname": "Max", "nick_name": "", "identity": "ABCD1234"},
            ],
            [{"groupname": "Broken", "id": "", "creator": ""}],
            report,
        )
        assert list(index) == ["ABCD1234"]
        assert len(report.failures) == 2

    def test_first_of_repeated_identities_wins(self):
        """Should keep the first row of a repeated identity."""
        index = build_identity_index(
            [
                {"lastname": "First", "firstname": "", "nick_name": "", "identity": "ABCD1234"},
                {"lastname": "Second", "firstname": "", "nick_name": "", "identity": "ABCD1234"},
            ],
            [],
        )
        assert index["ABCD1234"].display_name == "First ABCD1234"
