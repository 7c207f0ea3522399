from datetime import date

import pytest

import admin_actions
from conftest import blob_sha
from github_store import ContentStoreClient, NotConfigured, RemoteWriteError


def test_spring_fair_achievement_without_image(client, store):
    written = admin_actions.submit_achievement(
        client, "spring-fair", "Spring Fair", "Activity", "2024-05-01", "Annual fair"
    )
    assert written == ["Achievements/spring-fair/data.txt"]
    assert store.text("Achievements/spring-fair/data.txt") == "Spring Fair\nActivity\n2024-05-01\nAnnual fair"
    assert not any(r["path"].endswith("image.jpg") for r in store.requests)
    assert store.calls("PUT")[0]["body"]["message"] == "Add achievement: Spring Fair"


def test_achievement_with_image(client, store):
    image = b"\xff\xd8\xff\xe0 not utf8 \x80\x81"
    admin_actions.submit_achievement(
        client, "robotics", "Robotics Cup", "Achievements", "2024-04-02", "1st place", image
    )
    assert store.files["Achievements/robotics/image.jpg"] == image
    assert store.calls("PUT")[1]["body"]["message"] == "Add image for achievement: Robotics Cup"


def test_achievement_resubmit_updates_existing_folder(client, store):
    store.seed("Achievements/robotics/data.txt", "old")
    admin_actions.submit_achievement(client, "robotics", "Robotics", "Activity", "2024-04-02", "new")
    assert store.calls("PUT")[0]["body"]["sha"] == blob_sha(b"old")


def test_achievement_validation_happens_before_requests(client, store):
    with pytest.raises(ValueError):
        admin_actions.submit_achievement(client, "x", "T", "Sports", "2024-01-01", "d")
    with pytest.raises(ValueError):
        admin_actions.submit_achievement(client, "x", "", "Activity", "2024-01-01", "d")
    with pytest.raises(ValueError):
        admin_actions.submit_achievement(client, "a/b", "T", "Activity", "2024-01-01", "d")
    assert store.requests == []


def test_upload_writes_data_then_files(client, store):
    result = admin_actions.submit_upload(
        client, "exams", "Exam papers", "2024-03-10", "", [("a.pdf", b"%PDF-a"), ("b.pdf", b"%PDF-b")]
    )
    assert result.clean
    assert store.text("Uploads/exams/data.txt") == "Exam papers\n2024-03-10\n"
    assert store.paths("PUT") == ["Uploads/exams/data.txt", "Uploads/exams/a.pdf", "Uploads/exams/b.pdf"]
    assert store.calls("PUT")[1]["body"]["message"] == "Add file: a.pdf"


def test_upload_data_failure_stops_before_files(client, store):
    store.fail("PUT", "Uploads/exams/data.txt", 401)
    with pytest.raises(RemoteWriteError):
        admin_actions.submit_upload(client, "exams", "Exams", "", "", [("a.pdf", b"a")])
    assert store.paths("PUT") == ["Uploads/exams/data.txt"]


def test_upload_partial_failure_is_reported(client, store):
    store.fail("PUT", "Uploads/exams/b.pdf", 413)
    result = admin_actions.submit_upload(
        client, "exams", "Exams", "", "", [("a.pdf", b"a"), ("b.pdf", b"b"), ("c.pdf", b"c")]
    )
    assert [i.status for i in result.items] == ["ok", "failed", "skipped"]
    assert "Uploads/exams/a.pdf" in store.files


def test_gallery(client, store):
    result = admin_actions.submit_gallery(client, "sports-day", [("1.jpg", b"1"), ("2.jpg", b"2")])
    assert result.clean
    assert sorted(store.files) == ["Gallery/sports-day/1.jpg", "Gallery/sports-day/2.jpg"]
    assert store.calls("PUT")[0]["body"]["message"] == "Add image: 1.jpg to gallery sports-day"
    with pytest.raises(ValueError):
        admin_actions.submit_gallery(client, "empty", [])


def test_batch_screens_require_configuration(store):
    client = ContentStoreClient(None, session=store)
    with pytest.raises(NotConfigured):
        admin_actions.submit_gallery(client, "trip", [("1.jpg", b"img")])
    with pytest.raises(NotConfigured):
        admin_actions.submit_upload(client, "exams", "Exams", "", "", [("a.pdf", b"a")])
    assert store.requests == []


def test_upload_without_files_is_rejected(client, store):
    with pytest.raises(ValueError):
        admin_actions.submit_upload(client, "exams", "Exams", "2024-03-01", "", [])
    assert store.requests == []


def test_notice_is_stored_and_listed(client, store):
    notice = admin_actions.submit_notice(
        client, "Parent meeting", "2024-02-01", "Meeting", True, "Room 4\n5 pm"
    )
    path = f"Notices/{notice.notice_id}.txt"
    assert store.text(path) == "Parent meeting\n2024-02-01\nMeeting\ntrue\nRoom 4\n5 pm"
    listed = client.list_notices()
    assert [n.notice_id for n in listed] == [notice.notice_id]
    assert listed[0].content == "Room 4\n5 pm"


def test_notice_date_defaults_to_today(client, store):
    notice = admin_actions.submit_notice(client, "T", "", "General", False, "x", notice_id="NOTICE-A-B")
    assert notice.date == date.today().isoformat()
    assert "Notices/NOTICE-A-B.txt" in store.files


def test_new_notice_id_redraws_on_collision(client, store, monkeypatch):
    store.seed("Notices/NOTICE-1-AAAAA.txt", "taken")
    ids = iter(["NOTICE-1-AAAAA", "NOTICE-1-BBBBB"])
    monkeypatch.setattr(admin_actions, "generate_notice_id", lambda: next(ids))
    assert admin_actions.new_notice_id(client) == "NOTICE-1-BBBBB"


def test_notice_id_collisions_never_overwrite(client, store, monkeypatch):
    old = "Old\n2024-01-01\nGeneral\nfalse\nkeep me"
    store.seed("Notices/NOTICE-1-AAAAA.txt", old)
    monkeypatch.setattr(admin_actions, "generate_notice_id", lambda: "NOTICE-1-AAAAA")
    with pytest.raises(RemoteWriteError):
        admin_actions.submit_notice(client, "New", "2024-02-01", "General", False, "text")
    assert store.text("Notices/NOTICE-1-AAAAA.txt") == old
    assert store.calls("PUT") == []
    assert len(store.calls("GET")) == 3


def test_delete_notice(client, store):
    store.seed("Notices/N-1.txt", "Old\n2024-01-01\nGeneral\nfalse\n")
    notice = admin_actions.find_notice(client, "N-1")
    admin_actions.delete_notice(client, notice)
    assert store.files == {}
    assert store.calls("DELETE")[0]["body"]["message"] == "Delete notice: Old"
    assert admin_actions.find_notice(client, "N-1") is None


def test_list_managed_folders(client, store):
    store.seed("Achievements/a/data.txt", "x")
    store.seed("Achievements/readme.txt", "x")
    store.seed("Gallery/trip/1.jpg", b"1")
    folders = admin_actions.list_managed_folders(client)
    assert {k: [e.name for e in v] for k, v in folders.items()} == {
        "Achievements": ["a"],
        "Uploads": [],
        "Gallery": ["trip"],
    }


def test_delete_managed_folder(client, store):
    store.seed("Gallery/trip/1.jpg", b"1")
    store.seed("Gallery/trip/2.jpg", b"2")
    store.seed("Gallery/keep/1.jpg", b"1")
    deleted = admin_actions.delete_managed_folder(client, "Gallery", "trip")
    assert sorted(deleted) == ["Gallery/trip/1.jpg", "Gallery/trip/2.jpg"]
    assert list(store.files) == ["Gallery/keep/1.jpg"]


def test_main_folders_cannot_be_deleted(client, store):
    store.seed("Gallery/trip/1.jpg", b"1")
    for main, folder in (("Gallery", ""), ("Gallery", ".."), ("Notices", "x"), ("", "Gallery")):
        with pytest.raises(ValueError):
            admin_actions.delete_managed_folder(client, main, folder)
    assert store.requests == []


@pytest.mark.parametrize("value", ["2024-13-01", "2024-1-1", "yesterday"])
def test_normalize_date_rejects_bad_input(value):
    with pytest.raises(ValueError):
        admin_actions.normalize_date(value)


def test_normalize_date():
    assert admin_actions.normalize_date(" 2024-05-01 ") == "2024-05-01"
    assert admin_actions.normalize_date(None) == date.today().isoformat()
