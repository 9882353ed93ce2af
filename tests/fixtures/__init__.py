# Test fixtures for Backtrack
from tests.fixtures.media_samples import (
    MINIMAL_JPEG as MINIMAL_JPEG,
    MINIMAL_PNG as MINIMAL_PNG,
    MINIMAL_MP4 as MINIMAL_MP4,
    write_media_file as write_media_file,
    signature_sniff as signature_sniff,
    get_all_files as get_all_files,
)
from tests.fixtures.generators import (
    create_threema_backup as create_threema_backup,
    create_scenario_backup as create_scenario_backup,
    message_row as message_row,
    attachment_body as attachment_body,
    formatted_time as formatted_time,
)
