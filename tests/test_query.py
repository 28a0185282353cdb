import unittest

from core.models.article import Article
from core.query import ListOptions, SortSpec, build_pagination, normalize_order


class QueryHelpersTestCase(unittest.TestCase):
    def test_sort_column_allow_list(self):
        sort = SortSpec(Article, ["created_at", "title"], "created_at")
        self.assertEqual(sort.resolve("title"), "title")
        self.assertEqual(sort.resolve("password_hash"), "created_at")
        self.assertEqual(sort.resolve(""), "created_at")

    def test_default_must_be_allowed(self):
        with self.assertRaises(ValueError):
            SortSpec(Article, ["title"], "created_at")

    def test_order_is_desc_unless_asc(self):
        self.assertEqual(normalize_order("asc"), "ASC")
        self.assertEqual(normalize_order("DESC"), "DESC")
        self.assertEqual(normalize_order("sideways"), "DESC")
        self.assertEqual(normalize_order(None), "DESC")

    def test_list_options_offset(self):
        options = ListOptions(page=3, limit=20)
        self.assertEqual(options.offset, 40)
        self.assertEqual(ListOptions(page=0, limit=0).offset, 0)

    def test_pagination_pages_round_up(self):
        self.assertEqual(build_pagination(2, 10, 21)["pages"], 3)
        self.assertEqual(build_pagination(1, 10, 0)["pages"], 0)
        self.assertEqual(build_pagination(1, 10, 10)["pages"], 1)


if __name__ == "__main__":
    unittest.main()
