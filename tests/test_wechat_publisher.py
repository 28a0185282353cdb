import json
import unittest
from unittest import mock

from core.wechat_publisher import WeChatPublishError, WeChatPublisher, markdown_to_html


class _MockResp:
    def __init__(self, payload=None, status_code=200, content=b""):
        self._payload = payload
        self.status_code = status_code
        self.content = content
        self.text = json.dumps(payload or {})

    def json(self):
        return self._payload


class TitleCleanupTestCase(unittest.TestCase):
    def test_short_title_kept(self):
        self.assertEqual(WeChatPublisher._clean_title("普通标题"), "普通标题")

    def test_control_chars_removed(self):
        self.assertEqual(WeChatPublisher._clean_title("标题\n包含\t换行"), "标题 包含 换行")

    def test_long_title_truncated_by_bytes(self):
        title = WeChatPublisher._clean_title("这是一个非常长的标题" * 5)
        self.assertLessEqual(len(title.encode("utf-8")), 50)
        self.assertTrue(title.startswith("这是一个"))

    def test_empty_title_placeholder(self):
        self.assertEqual(WeChatPublisher._clean_title("   "), "未命名草稿")


class WeChatPublisherTestCase(unittest.TestCase):
    def test_mock_mode_returns_synthetic_id(self):
        publisher = WeChatPublisher(mode="mock")
        result = publisher.publish({"id": 7, "title": "t", "content": "c"})
        self.assertRegex(result["wechat_article_id"], r"^wechat_\d+_7$")
        self.assertEqual(publisher.account_info()["account_status"], "mock")

    def test_markdown_rendering(self):
        html = markdown_to_html("# 标题\n\n- 一\n- 二")
        self.assertIn("<h1>标题</h1>", html)
        self.assertIn("<li>一</li>", html)

    @mock.patch("core.wechat_publisher.requests.post")
    @mock.patch("core.wechat_publisher.requests.get")
    def test_api_mode_submits_draft(self, mock_get, mock_post):
        def fake_get(url, **kwargs):
            if url.endswith("/cgi-bin/token"):
                return _MockResp({"access_token": "TOKEN", "expires_in": 7200})
            return _MockResp(content=b"image-bytes")

        def fake_post(url, **kwargs):
            if url.endswith("/material/add_material"):
                return _MockResp({"media_id": "COVER_ID", "url": "http://mmbiz.qpic.cn/cover"})
            if url.endswith("/draft/add"):
                return _MockResp({"media_id": "DRAFT_ID"})
            raise AssertionError(url)

        mock_get.side_effect = fake_get
        mock_post.side_effect = fake_post

        publisher = WeChatPublisher(mode="api", app_id="wx123456789", app_secret="secret")
        result = publisher.publish({
            "id": 3,
            "title": "发布\n测试",
            "content": "# 发布测试\n\n正文内容",
            "cover_image_url": "https://img.example.com/cover.jpg",
            "author": "alice",
        })
        self.assertEqual(result["wechat_article_id"], "DRAFT_ID")

        draft_call = [c for c in mock_post.call_args_list if c.args[0].endswith("/draft/add")][0]
        self.assertEqual(draft_call.kwargs["params"], {"access_token": "TOKEN"})
        body = json.loads(draft_call.kwargs["data"].decode("utf-8"))
        article = body["articles"][0]
        self.assertEqual(article["title"], "发布 测试")
        self.assertEqual(article["thumb_media_id"], "COVER_ID")
        self.assertEqual(article["author"], "alice")
        self.assertIn("<h1>发布测试</h1>", article["content"])

        # token 已缓存，不会重复获取
        publisher.get_access_token()
        token_calls = [c for c in mock_get.call_args_list if c.args[0].endswith("/cgi-bin/token")]
        self.assertEqual(len(token_calls), 1)

    @mock.patch("core.wechat_publisher.requests.post")
    @mock.patch("core.wechat_publisher.requests.get")
    def test_errcode_raises(self, mock_get, mock_post):
        mock_get.return_value = _MockResp({"access_token": "TOKEN", "expires_in": 7200})
        mock_post.return_value = _MockResp({"errcode": 45003, "errmsg": "title size out of limit"})
        publisher = WeChatPublisher(mode="api", app_id="wx123", app_secret="secret")
        with self.assertRaises(WeChatPublishError) as ctx:
            publisher.publish({"id": 1, "title": "t", "content": "c"})
        self.assertIn("45003", str(ctx.exception))

    def test_api_mode_requires_credentials(self):
        publisher = WeChatPublisher(mode="api", app_id="", app_secret="")
        publisher.app_id = ""
        publisher.app_secret = ""
        with self.assertRaises(WeChatPublishError):
            publisher.get_access_token()
        self.assertEqual(publisher.account_info()["account_status"], "unconfigured")


if __name__ == "__main__":
    unittest.main()
