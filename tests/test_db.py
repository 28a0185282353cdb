import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError

import core.db
from core.db import Database
from core.models.hot_topic import HotTopic
from support import make_database


class DatabaseTestCase(unittest.TestCase):
    def test_session_scope_commits(self):
        db = make_database()
        with db.session_scope() as session:
            session.add(HotTopic(title="a"))
        with db.session_scope() as session:
            self.assertEqual(session.query(HotTopic).count(), 1)
        db.dispose()

    def test_session_scope_rolls_back_on_error(self):
        db = make_database()
        with self.assertRaises(RuntimeError):
            with db.session_scope() as session:
                session.add(HotTopic(title="a"))
                session.flush()
                raise RuntimeError("boom")
        with db.session_scope() as session:
            self.assertEqual(session.query(HotTopic).count(), 0)
        db.dispose()

    def test_transaction_returns_result(self):
        db = make_database()

        def work(session):
            topic = HotTopic(title="x", hotness_score=3)
            session.add(topic)
            session.flush()
            return topic.id

        topic_id = db.transaction(work)
        rows = db.query("SELECT title, hotness_score FROM hot_topics WHERE id = :id", {"id": topic_id})
        self.assertEqual(rows, [{"title": "x", "hotness_score": 3}])
        db.dispose()

    def test_foreign_keys_enforced(self):
        db = make_database()
        rows = db.query("PRAGMA foreign_keys")
        self.assertEqual(list(rows[0].values())[0], 1)
        db.dispose()

    def test_unreachable_backend_falls_back_once(self):
        real_build = core.db._build_engine
        broken = mock.MagicMock()
        broken.dialect.name = "postgresql"
        broken.connect.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

        def fake_build(url, echo=False):
            if url.startswith("postgresql"):
                return broken
            return real_build(url, echo=echo)

        with mock.patch("core.db._build_engine", side_effect=fake_build):
            db = Database("postgresql://u:p@127.0.0.1:1/app", fallback="sqlite://")
            db.connect()
            self.assertEqual(db.backend, "sqlite")
            self.assertEqual(db.url, "sqlite://")
            db.connect()
            self.assertEqual(broken.connect.call_count, 1)
        db.create_tables()
        self.assertEqual(db.query("SELECT COUNT(*) AS n FROM hot_topics"), [{"n": 0}])
        db.dispose()

    def test_missing_driver_falls_back(self):
        real_build = core.db._build_engine

        def fake_build(url, echo=False):
            if url.startswith("postgresql"):
                raise ModuleNotFoundError("No module named 'psycopg2'")
            return real_build(url, echo=echo)

        with mock.patch("core.db._build_engine", side_effect=fake_build):
            db = Database("postgresql://u:p@127.0.0.1:1/app", fallback="sqlite://")
            db.connect()
        self.assertEqual(db.backend, "sqlite")
        db.create_tables()
        self.assertEqual(db.query("SELECT COUNT(*) AS n FROM users"), [{"n": 0}])
        db.dispose()

    def test_unknown_dialect_falls_back(self):
        db = Database("nosuchdialect://u:p@host/app", fallback="sqlite://")
        db.connect()
        self.assertEqual(db.backend, "sqlite")
        db.dispose()

    def test_missing_driver_without_fallback_raises(self):
        with mock.patch("core.db._build_engine", side_effect=ImportError("no driver")):
            db = Database("postgresql://u:p@127.0.0.1:1/app", fallback="")
            with self.assertRaises(ImportError):
                db.connect()

    def test_sqlite_failure_is_not_masked(self):
        db = Database("sqlite:////nonexistent-dir/x/y.db", fallback="sqlite://")
        with self.assertRaises(OperationalError):
            db.connect()


if __name__ == "__main__":
    unittest.main()
