import pytest

from astrbot_plugin_chatsync.db_manager import Session


def _msg(db, chat, sender, ts, name=None):
    db.save_message(chat_jid=chat, sender_jid=sender, sender_name=name, timestamp=ts)


def test_chat_summary_counts_and_order(temp_db):
    _msg(temp_db, "111@s.whatsapp.net", "111@s.whatsapp.net", 1000)
    _msg(temp_db, "111@s.whatsapp.net", "111@s.whatsapp.net", 5000)
    _msg(temp_db, "g1@g.us", "222@s.whatsapp.net", 3000)

    summary = temp_db.get_chat_summary()

    assert summary == [
        {"jid": "111@s.whatsapp.net", "message_count": 2, "last_message_timestamp": 5000},
        {"jid": "g1@g.us", "message_count": 1, "last_message_timestamp": 3000},
    ]


def test_group_members_ranked_with_latest_name(temp_db):
    _msg(temp_db, "g1@g.us", "a@s.whatsapp.net", 1000, "Old A")
    _msg(temp_db, "g1@g.us", "a@s.whatsapp.net", 2000, "New A")
    _msg(temp_db, "g1@g.us", "b@s.whatsapp.net", 1500)
    _msg(temp_db, "g2@g.us", "b@s.whatsapp.net", 1500, "B elsewhere")

    members = temp_db.get_group_members_message_count("g1@g.us")

    assert members == [
        {"jid": "a@s.whatsapp.net", "name": "New A", "message_count": 2},
        {"jid": "b@s.whatsapp.net", "name": "b", "message_count": 1},
    ]


def test_inactive_members_against_participants(temp_db):
    temp_db.save_group_metadata(
        "g1@g.us", "Team", ["a@s.whatsapp.net", "b@s.whatsapp.net", "c@s.whatsapp.net"]
    )
    _msg(temp_db, "g1@g.us", "a@s.whatsapp.net", 1000)
    _msg(temp_db, "g1@g.us", "b@s.whatsapp.net", 9000)

    assert temp_db.get_inactive_group_members("g1@g.us") == ["c@s.whatsapp.net"]
    assert temp_db.get_inactive_group_members("g1@g.us", since_ms=5000) == [
        "a@s.whatsapp.net",
        "c@s.whatsapp.net",
    ]


def test_inactive_members_without_metadata(temp_db):
    assert temp_db.get_inactive_group_members("unknown@g.us") == []


def test_group_metadata_upsert(temp_db):
    temp_db.save_group_metadata("g1@g.us", "First", ["a@s.whatsapp.net"])
    temp_db.save_group_metadata("g1@g.us", "Renamed", ["a@s.whatsapp.net", "b@s.whatsapp.net"])

    metadata = temp_db.get_group_metadata("g1@g.us")

    assert metadata.subject == "Renamed"
    assert metadata.participants == ["a@s.whatsapp.net", "b@s.whatsapp.net"]
    assert temp_db.get_group_metadata("missing@g.us") is None


def test_session_id_absent(temp_db):
    assert temp_db.get_session_id() is None


def test_replace_session_rows(temp_db):
    temp_db.replace_session_rows([
        {"session_id": "old", "data_key": "creds", "data_value": "1"},
    ])
    new_rows = [
        {"session_id": "new", "data_key": f"key-{i}", "data_value": str(i)}
        for i in range(650)
    ]

    temp_db.replace_session_rows(new_rows)

    assert temp_db.get_session_id() == "new"
    assert sorted(temp_db.get_session_rows(), key=lambda r: r["data_key"]) == sorted(
        new_rows, key=lambda r: r["data_key"]
    )


def test_replace_session_rows_rolls_back(mocker, temp_db):
    original = [{"session_id": "old", "data_key": "creds", "data_value": "1"}]
    temp_db.replace_session_rows(original)

    mocker.patch.object(Session, "insert_many", side_effect=RuntimeError("disk full"))
    with pytest.raises(RuntimeError):
        temp_db.replace_session_rows([
            {"session_id": "new", "data_key": "creds", "data_value": "2"},
        ])

    assert temp_db.get_session_rows() == original
