"""
Detection tests for the Threema processor.

Tests verify that the processor correctly identifies unpacked backups and
rejects other folders.
"""

from processors.threema import get_processor
from processors.threema.processor import ThreemaProcessor
from tests.fixtures.generators import MESSAGE_HEADERS, create_threema_backup, write_csv


class TestThreemaDetection:
    """Tests for Threema processor detection."""

    def test_detect_valid_backup(self, processor, scenario_backup):
        """Should detect a backup with contacts and conversations."""
        assert processor.detect(scenario_backup) is True

    def test_detect_contacts_only(self, processor, temp_export_dir):
        create_threema_backup(temp_export_dir)
        assert processor.detect(temp_export_dir) is True

    def test_detect_conversation_only(self, processor, temp_export_dir):
        write_csv(temp_export_dir / "group_message_99-ABCD1234.csv", MESSAGE_HEADERS, [])
        assert processor.detect(temp_export_dir) is True

    def test_reject_empty_directory(self, processor, temp_export_dir):
        assert processor.detect(temp_export_dir) is False

    def test_reject_other_tables(self, processor, temp_export_dir):
        (temp_export_dir / "data.csv").write_text("a,b\n")
        (temp_export_dir / "message_notes.txt").write_text("x")
        assert processor.detect(temp_export_dir) is False

    def test_reject_missing_path(self, processor, tmp_path):
        assert processor.detect(tmp_path / "absent") is False

    def test_reject_file(self, processor, tmp_path):
        path = tmp_path / "contacts.csv"
        path.write_text("identity\n")
        assert processor.detect(path) is False

    def test_registration(self):
        assert get_processor() is ThreemaProcessor
        assert ThreemaProcessor.get_name() == "Threema"
