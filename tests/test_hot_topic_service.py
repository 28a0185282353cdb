import unittest

from core import hot_topic_service
from core.errors import NotFound, ValidationError
from core.query import ListOptions
from support import make_database


class HotTopicServiceTestCase(unittest.TestCase):
    def setUp(self):
        self.db = make_database()
        self.session = self.db.get_session()
        hot_topic_service.seed_sample_topics(self.session)

    def tearDown(self):
        self.session.close()
        self.db.dispose()

    def test_seed_only_fills_empty_store(self):
        self.assertEqual(hot_topic_service.seed_sample_topics(self.session), 0)
        _, pagination = hot_topic_service.list_hot_topics(self.session, ListOptions(limit=50))
        self.assertEqual(pagination["total"], 5)

    def test_list_defaults_to_hotness_desc(self):
        items, pagination = hot_topic_service.list_hot_topics(self.session, ListOptions(page=1, limit=2))
        self.assertEqual([i["hotness_score"] for i in items], [85, 78])
        self.assertEqual(pagination, {"page": 1, "limit": 2, "total": 5, "pages": 3})

    def test_unknown_sort_field_falls_back(self):
        items, _ = hot_topic_service.list_hot_topics(
            self.session,
            ListOptions(limit=10, sort_by="hotness_score; DROP TABLE hot_topics", order="ASC"),
        )
        self.assertEqual([i["hotness_score"] for i in items], [65, 68, 72, 78, 85])

    def test_category_filter(self):
        items, pagination = hot_topic_service.list_hot_topics(self.session, ListOptions(), category="marketing")
        self.assertEqual(pagination["total"], 2)
        self.assertTrue(all(i["category"] == "marketing" for i in items))

    def test_by_category_and_trending(self):
        items = hot_topic_service.list_by_category(self.session, "marketing", limit=1)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["hotness_score"], 72)

        trending = hot_topic_service.list_trending(self.session)
        self.assertEqual([i["hotness_score"] for i in trending], [85])

    def test_create_and_get(self):
        created = hot_topic_service.create_hot_topic(self.session, {
            "title": "低代码平台",
            "category": "technology",
            "hotness_score": 90,
            "trend_data": {"trend": "up"},
        })
        self.assertEqual(created["trend_data"], {"trend": "up"})
        fetched = hot_topic_service.get_hot_topic(self.session, created["id"])
        self.assertEqual(fetched["title"], "低代码平台")
        self.assertEqual(len(hot_topic_service.list_trending(self.session)), 2)

    def test_create_requires_title(self):
        with self.assertRaises(ValidationError):
            hot_topic_service.create_hot_topic(self.session, {"summary": "no title"})

    def test_missing_topic(self):
        with self.assertRaises(NotFound):
            hot_topic_service.get_hot_topic(self.session, 9999)


if __name__ == "__main__":
    unittest.main()
