import unittest

from core import article_service, wechat_sync_service
from core.errors import AlreadySynced, NotFound, UpstreamFailure, ValidationError
from core.models.article import Article
from core.models.sync_log import SyncLog
from core.query import ListOptions
from support import FakePublisher, create_user, make_database


class WeChatSyncServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_database()
        self.session = self.db.get_session()
        self.alice = create_user(self.session, "alice")
        self.bob = create_user(self.session, "bob")
        self.article = article_service.create_article(
            self.session, self.alice.id, {"title": "Hello", "content": "# Hello\n\nworld"}
        )

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def _logs(self):
        with self.db.session_scope() as session:
            return [(row.sync_status, row.error_message) for row in session.query(SyncLog).order_by(SyncLog.id)]

    def _article_row(self):
        with self.db.session_scope() as session:
            return session.query(Article).filter(Article.id == self.article["id"]).one()

    def test_publish_success(self):
        publisher = FakePublisher()
        result = wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], publisher)
        self.assertEqual(result["wechat_article_id"], "remote_1")
        self.assertEqual(result["message"], "Article successfully synced to WeChat")
        self.assertEqual(publisher.calls[0]["author"], "alice")

        row = self._article_row()
        self.assertEqual(row.wechat_sync_status, "synced")
        self.assertEqual(row.wechat_article_id, "remote_1")
        self.assertIsNotNone(row.wechat_sync_time)
        self.assertEqual(self._logs(), [("success", None)])

    def test_second_publish_is_rejected_without_new_log(self):
        publisher = FakePublisher()
        wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], publisher)
        with self.assertRaises(AlreadySynced) as ctx:
            wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], publisher)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(len(publisher.calls), 1)
        self.assertEqual(len(self._logs()), 1)

    def test_publish_failure_marks_failed_and_allows_retry(self):
        failing = FakePublisher(error=RuntimeError("WeChat API rejected the article content"))
        with self.assertRaises(UpstreamFailure) as ctx:
            wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], failing)
        self.assertEqual(ctx.exception.message, "Failed to sync article to WeChat")
        self.assertEqual(self._article_row().wechat_sync_status, "failed")
        self.assertEqual(self._logs(), [("failed", "WeChat API rejected the article content")])

        wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], FakePublisher())
        self.assertEqual(self._article_row().wechat_sync_status, "synced")
        self.assertEqual([status for status, _ in self._logs()], ["failed", "success"])

    def test_non_owner_and_missing_id(self):
        with self.assertRaises(NotFound):
            wechat_sync_service.publish_article(self.session, self.bob.id, self.article["id"], FakePublisher())
        with self.assertRaises(ValidationError):
            wechat_sync_service.publish_article(self.session, self.alice.id, None, FakePublisher())
        self.assertEqual(self._logs(), [])

    def test_status_logs_and_account_info(self):
        wechat_sync_service.publish_article(self.session, self.alice.id, self.article["id"], FakePublisher())

        status = wechat_sync_service.get_sync_status(self.session, self.alice.id, self.article["id"])
        self.assertEqual(status["current_status"]["wechat_sync_status"], "synced")
        self.assertEqual(len(status["sync_history"]), 1)
        self.assertEqual(status["sync_history"][0]["wechat_response"], {"media_id": "remote_1"})
        with self.assertRaises(NotFound):
            wechat_sync_service.get_sync_status(self.session, self.bob.id, self.article["id"])

        items, pagination = wechat_sync_service.list_sync_logs(self.session, self.alice.id, ListOptions())
        self.assertEqual(pagination["total"], 1)
        self.assertEqual(items[0]["article_title"], "Hello")
        _, bob_pagination = wechat_sync_service.list_sync_logs(self.session, self.bob.id, ListOptions())
        self.assertEqual(bob_pagination["total"], 0)

        info = wechat_sync_service.get_account_info(self.session, self.alice.id, FakePublisher())
        self.assertEqual(info["articles_published"], 1)
        self.assertIsNotNone(info["last_sync"])
        self.assertEqual(info["account_status"], "configured")


if __name__ == "__main__":
    unittest.main()
