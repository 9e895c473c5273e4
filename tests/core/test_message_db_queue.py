from pathlib import Path

from src.deckster.core.message_db_queue import MessageDbQueue


def test_message_db_queue_write_and_query(tmp_path: Path):
    queue = MessageDbQueue(db_path=tmp_path / "queue.db")
    try:
        created = queue.write(
            [
                ("CREATE TABLE notes (id TEXT PRIMARY KEY, body TEXT);", None),
                ("INSERT INTO notes(id, body) VALUES(?, ?);", ("n1", "hello")),
                ("INSERT INTO notes(id, body) VALUES(?, ?);", ("n2", "world")),
            ]
        )
        assert created["ok"] is True
        assert created["rows_affected"] == 2

        rows = queue.query("SELECT id, body FROM notes ORDER BY id;")
        assert rows["ok"] is True
        assert rows["rows"] == [{"id": "n1", "body": "hello"}, {"id": "n2", "body": "world"}]
        assert rows["job_id"].startswith("msgdb_")

        assert queue.query("SELECT id FROM notes ORDER BY id;", max_rows=1)["rows"] == [{"id": "n1"}]
        assert queue.health()["completed_jobs"] == 3
    finally:
        queue.stop()


def test_failed_write_rolls_back_every_statement(tmp_path: Path):
    queue = MessageDbQueue(db_path=tmp_path / "queue.db")
    try:
        queue.write([("CREATE TABLE notes (id TEXT PRIMARY KEY);", None)])
        out = queue.write(
            [
                ("INSERT INTO notes(id) VALUES(?);", ("n1",)),
                ("INSERT INTO notes(id) VALUES(?);", ("n1",)),
            ]
        )
        assert out["ok"] is False
        count = queue.query("SELECT COUNT(*) AS total FROM notes;")
        assert count["rows"] == [{"total": 0}]
        assert queue.health()["last_error"]
    finally:
        queue.stop()


def test_query_rejects_writes_and_write_rejects_empty(tmp_path: Path):
    queue = MessageDbQueue(db_path=tmp_path / "queue.db")
    try:
        assert queue.query("DELETE FROM notes;")["ok"] is False
        assert queue.query("   ")["ok"] is False
        assert queue.write([])["ok"] is False
        assert queue.write([("  ", None)])["ok"] is False
    finally:
        queue.stop()
    assert queue.health()["running"] is False
