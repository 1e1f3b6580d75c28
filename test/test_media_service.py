from __future__ import annotations

import io
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

import config
from conftest import JPEG_BYTES, MP4_BYTES, PNG_BYTES
from core.errors import InvalidRequest
from core.validators import sanitize_filename
from database.models import MediaRecord
from services.account_service import AccountService
from services.media_service import IncomingFile, MediaService


def _file(name: str, data: bytes = JPEG_BYTES, content_type: str = None) -> IncomingFile:
    return IncomingFile(filename=name, stream=io.BytesIO(data), size=len(data), content_type=content_type)


@pytest.fixture()
def school(session):
    return AccountService.register(session, "riverside", "secret1")


def _stored_files(file_store) -> list:
    return sorted(path.name for path in file_store.root.iterdir())


def test_ingest_stores_each_valid_file(session, file_store, school) -> None:
    results = MediaService.ingest(
        session,
        file_store,
        school.id,
        [_file("team.jpg", content_type="image/jpeg"), _file("race.mp4", MP4_BYTES, "video/mp4")],
        event_name="  Sports Day ",
        remarks="Morning session",
        tags=" athletics, ,relay ",
    )

    assert [result.ok for result in results] == [True, True]
    records = session.query(MediaRecord).order_by(MediaRecord.id).all()
    assert [record.original_name for record in records] == ["team.jpg", "race.mp4"]
    assert {record.event_name for record in records} == {"Sports Day"}
    assert records[0].tags == "athletics,relay"
    assert records[0].uploaded_at == records[1].uploaded_at
    assert _stored_files(file_store) == sorted(record.filename for record in records)
    assert all(file_store.exists(record.filename) for record in records)


def test_invalid_file_is_neither_stored_nor_recorded(session, file_store, school) -> None:
    results = MediaService.ingest(
        session,
        file_store,
        school.id,
        [
            _file("a.jpg", content_type="image/jpeg"),
            _file("notes.txt", b"hello", "text/plain"),
            _file("b.png", PNG_BYTES, "image/png"),
        ],
        event_name="Art Fair",
    )

    assert [result.ok for result in results] == [True, False, True]
    assert results[1].error
    assert results[1].to_dict()["status"] == "failed"
    assert session.query(MediaRecord).count() == 2
    assert len(_stored_files(file_store)) == 2


def test_mime_type_must_match_extension(session, file_store, school) -> None:
    results = MediaService.ingest(
        session, file_store, school.id, [_file("photo.jpg", content_type="video/mp4")], event_name="Art Fair"
    )
    assert not results[0].ok


def test_missing_mime_type_falls_back_to_extension(session, file_store, school) -> None:
    results = MediaService.ingest(
        session,
        file_store,
        school.id,
        [_file("photo.jpg"), _file("clip.mov", MP4_BYTES, "application/octet-stream")],
        event_name="Art Fair",
    )
    assert [result.ok for result in results] == [True, True]


def test_long_filename_keeps_its_extension(session, file_store, school) -> None:
    long_name = "sports-day-" + "a" * 300 + ".JPG"
    assert sanitize_filename(long_name).endswith(".JPG")
    assert len(sanitize_filename(long_name)) == 255

    results = MediaService.ingest(
        session, file_store, school.id, [_file(long_name, content_type="image/jpeg")], event_name="Art Fair"
    )

    assert results[0].ok
    record = session.query(MediaRecord).one()
    assert record.file_type == ".jpg"
    assert len(record.original_name) == 255


def test_oversized_and_empty_files_are_rejected(session, file_store, school, monkeypatch) -> None:
    monkeypatch.setattr(config, "MAX_UPLOAD_SIZE_MB", 1)
    big = b"\x00" * (1024 * 1024 + 1)

    results = MediaService.ingest(
        session,
        file_store,
        school.id,
        [_file("big.jpg", big, "image/jpeg"), _file("empty.jpg", b"", "image/jpeg")],
        event_name="Art Fair",
    )

    assert [result.ok for result in results] == [False, False]
    assert _stored_files(file_store) == []


@pytest.mark.parametrize("event_name", ["", "   ", None, "x" * 256])
def test_event_name_is_required(session, file_store, school, event_name) -> None:
    with pytest.raises(InvalidRequest):
        MediaService.ingest(session, file_store, school.id, [_file("a.jpg")], event_name=event_name)
    assert _stored_files(file_store) == []


def test_file_count_limits(session, file_store, school, monkeypatch) -> None:
    monkeypatch.setattr(config, "MAX_FILES_PER_UPLOAD", 2)

    with pytest.raises(InvalidRequest):
        MediaService.ingest(session, file_store, school.id, [], event_name="Art Fair")
    with pytest.raises(InvalidRequest):
        MediaService.ingest(
            session, file_store, school.id, [_file(f"{i}.jpg") for i in range(3)], event_name="Art Fair"
        )
    assert _stored_files(file_store) == []


def test_failed_insert_removes_stored_file(session, file_store, school, monkeypatch) -> None:
    real_commit = session.commit

    def failing_commit():
        if any(isinstance(obj, MediaRecord) for obj in session.new):
            raise SQLAlchemyError("disk full")
        real_commit()

    monkeypatch.setattr(session, "commit", failing_commit)

    results = MediaService.ingest(session, file_store, school.id, [_file("a.jpg")], event_name="Art Fair")

    assert not results[0].ok
    assert _stored_files(file_store) == []


def _add(session, owner_id: int, name: str, event: str, when: datetime) -> MediaRecord:
    record = MediaRecord(
        filename=f"{name}-{owner_id}.jpg",
        original_name=name,
        file_type=".jpg",
        event_name=event,
        uploaded_at=when,
        user_id=owner_id,
    )
    session.add(record)
    session.commit()
    return record


def test_query_is_scoped_to_owner_and_sorted(session, school) -> None:
    other = AccountService.register(session, "hillside", "secret1")
    base = datetime(2024, 5, 1, 9, 0)
    _add(session, school.id, "b", "Sports Day", base)
    _add(session, school.id, "a", "Art Fair", base + timedelta(hours=1))
    _add(session, school.id, "c", "Sports Day", base + timedelta(hours=2))
    _add(session, other.id, "z", "Sports Day", base)

    by_date = MediaService.query(session, school.id)
    assert [record.original_name for record in by_date] == ["c", "a", "b"]

    by_name = MediaService.query(session, school.id, sort_by="name", order="asc")
    assert [record.original_name for record in by_name] == ["a", "b", "c"]

    filtered = MediaService.query(session, school.id, event_name="Sports Day", order="sideways")
    assert [record.original_name for record in filtered] == ["c", "b"]

    limited = MediaService.query(session, school.id, limit=1)
    assert [record.original_name for record in limited] == ["c"]

    unsorted = MediaService.query(session, school.id, sort_by="colour")
    assert [record.original_name for record in unsorted] == ["b", "a", "c"]

    with pytest.raises(InvalidRequest):
        MediaService.query(session, school.id, limit=0)


def test_query_all_includes_owner_names(session, school) -> None:
    AccountService.update_profile(session, school.id, {"school_name": "Riverside High"})
    other = AccountService.register(session, "hillside", "secret1")
    base = datetime(2024, 5, 1, 9, 0)
    _add(session, school.id, "a", "Sports Day", base)
    _add(session, other.id, "b", "Art Fair", base + timedelta(hours=1))

    everything = MediaService.query_all(session)
    assert [item["originalName"] for item in everything] == ["b", "a"]
    assert everything[0]["schoolName"] == "hillside"
    assert everything[1]["schoolName"] == "Riverside High"
    assert everything[1]["ownerName"] == "riverside"

    assert len(MediaService.query_all(session, owner_id=school.id)) == 1
    assert len(MediaService.query_all(session, event_name="Art Fair")) == 1


def test_suggest_event_names(session, school) -> None:
    base = datetime(2024, 5, 1, 9, 0)
    for offset, event in enumerate(["Sports Day", "Spring Concert", "Art Fair", "Sports Day", "Science Expo"]):
        _add(session, school.id, f"f{offset}", event, base + timedelta(hours=offset))

    assert MediaService.suggest_event_names(session, school.id, "sp") == ["Sports Day", "Spring Concert"]
    assert MediaService.suggest_event_names(session, school.id, "%") == []
    assert len(MediaService.suggest_event_names(session, school.id, "")) == 4


def test_resolve_handles_keeps_request_order(session, school) -> None:
    first = _add(session, school.id, "a", "Sports Day", datetime(2024, 5, 1))
    second = _add(session, school.id, "b", "Sports Day", datetime(2024, 5, 2))

    resolved = MediaService.resolve_handles(session, [second.id, 999, first.id, second.id])

    assert resolved == [(second.id, second.filename), (first.id, first.filename)]
