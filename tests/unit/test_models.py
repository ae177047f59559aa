"""
Unit tests for gallery domain models.
"""

from datetime import datetime, timedelta, timezone

import pytest

from shared_gallery.core.gallery import CompletedPart, MediaItem, MediaKind, MultipartSession


class TestMediaItem:

    def test_iso_timestamp(self):
        item = MediaItem(
            key="images/image-1-a.jpg",
            size=10,
            last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            kind=MediaKind.IMAGE,
        )
        assert item.last_modified_iso == "2024-01-02T03:04:05.000Z"

    def test_iso_timestamp_is_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        item = MediaItem(
            key="images/image-1-a.jpg",
            size=10,
            last_modified=datetime(2024, 1, 2, 5, 4, 5, 678900, tzinfo=plus_two),
            kind=MediaKind.IMAGE,
        )
        assert item.last_modified_iso == "2024-01-02T03:04:05.678Z"

    def test_naive_timestamp_is_taken_as_utc(self):
        item = MediaItem(key="k", size=0, last_modified=datetime(2024, 1, 2), kind=MediaKind.IMAGE)
        assert item.last_modified_iso == "2024-01-02T00:00:00.000Z"

    def test_missing_timestamp(self):
        item = MediaItem(key="images/a.jpg", size=0, last_modified=None, kind=MediaKind.IMAGE)
        assert item.last_modified_iso is None

    def test_file_name_is_last_segment(self):
        item = MediaItem(key="images/video-1-clip.mp4", size=0, last_modified=None, kind=MediaKind.VIDEO)
        assert item.file_name == "video-1-clip.mp4"


class TestCompletedPart:

    def test_part_numbers_start_at_one(self):
        with pytest.raises(ValueError, match="start at 1"):
            CompletedPart(part_number=0, etag="abc")


class TestMultipartSession:

    def test_new_session_starts_at_part_one(self):
        session = MultipartSession(key="images/video-1-a.mp4", upload_id="u1")
        assert session.next_part_number == 1
        assert session.parts == []

    def test_record_strips_etag_quotes(self):
        session = MultipartSession(key="k", upload_id="u")
        part = session.record(1, '"d41d8cd98f00b204e9800998ecf8427e"')
        assert part.etag == "d41d8cd98f00b204e9800998ecf8427e"
        assert session.next_part_number == 2

    def test_ordered_parts_sorts_by_number(self):
        session = MultipartSession(key="k", upload_id="u")
        session.record(3, "c")
        session.record(1, "a")
        session.record(2, "b")
        assert [p.part_number for p in session.ordered_parts()] == [1, 2, 3]
        # recording order is untouched
        assert [p.part_number for p in session.parts] == [3, 1, 2]
