"""
微信公众号草稿发布

mock 模式返回合成的远端 ID，用于本地联调与测试；
api 模式走公众号开放接口：获取 access_token -> 上传封面（永久素材）
-> 替换正文图片 -> 提交草稿箱，草稿的 media_id 即远端文章 ID。
"""

import json
import os
import re
import time
import uuid
from typing import Any, Dict, Optional

import requests
from bs4 import BeautifulSoup
from markdown import markdown

from core.config import cfg
from core.events import E, log_event
from core.log import get_logger

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.weixin.qq.com"
MODE_MOCK = "mock"
MODE_API = "api"


class WeChatPublishError(Exception):
    """微信接口返回错误或网络异常。"""

    def __init__(self, message: str, response: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.response = response or {}


def _mask(value: str) -> str:
    raw = str(value or "")
    if len(raw) <= 6:
        return "*" * len(raw)
    return f"{raw[:4]}{'*' * (len(raw) - 6)}{raw[-2:]}"


def markdown_to_html(content: str) -> str:
    text = (content or "").strip()
    if not text:
        return ""
    return markdown(text, extensions=["extra", "nl2br", "sane_lists"])


def _digest(content: str, limit: int = 54) -> str:
    text = re.sub(r"[#>*`\-\[\]()!]", " ", str(content or ""))
    text = re.sub(r"\s+", " ", text).strip()
    return text[:limit]


class WeChatPublisher:
    """微信公众号草稿箱发布器"""

    MAX_TITLE_BYTES = 50  # 标题字节限制（保守值，避免 errcode=45003）
    WECHAT_CDN_HOST = "mmbiz.qpic.cn"

    def __init__(
        self,
        mode: str = "",
        app_id: str = "",
        app_secret: str = "",
        api_base: str = "",
        timeout: int = 30,
    ):
        self.mode = str(mode or cfg.get("wechat.mode", "") or os.getenv("WECHAT_MODE", "") or MODE_MOCK).lower()
        self.app_id = str(app_id or cfg.get("wechat.app_id", "") or os.getenv("WECHAT_APP_ID", "")).strip()
        self.app_secret = str(app_secret or cfg.get("wechat.app_secret", "") or os.getenv("WECHAT_APP_SECRET", "")).strip()
        self.api_base = str(api_base or cfg.get("wechat.api_base", "") or DEFAULT_API_BASE).rstrip("/")
        self.timeout = int(timeout or 30)
        self.token = None
        self.token_expires_at = 0

    @property
    def is_mock(self) -> bool:
        return self.mode != MODE_API

    def account_info(self) -> Dict[str, Any]:
        if self.is_mock:
            status = "mock"
        elif self.app_id and self.app_secret:
            status = "configured"
        else:
            status = "unconfigured"
        return {
            "app_id": _mask(self.app_id),
            "mode": self.mode,
            "account_status": status,
        }

    def _check(self, data: Dict[str, Any], action: str) -> Dict[str, Any]:
        if int(data.get("errcode") or 0) != 0:
            raise WeChatPublishError(
                f"{action}失败: errcode={data.get('errcode')} errmsg={data.get('errmsg', '')}",
                response=data,
            )
        return data

    def _json(self, resp: requests.Response, action: str) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError:
            raise WeChatPublishError(f"{action}失败: 非 JSON 响应 {resp.text[:200]}")

    def get_access_token(self) -> str:
        """获取或刷新 Access Token"""
        if self.token and time.time() < self.token_expires_at:
            return self.token
        if not self.app_id or not self.app_secret:
            raise WeChatPublishError("未配置公众号 AppID / AppSecret")

        try:
            resp = requests.get(
                f"{self.api_base}/cgi-bin/token",
                params={
                    "grant_type": "client_credential",
                    "appid": self.app_id,
                    "secret": self.app_secret,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WeChatPublishError(f"获取 Token 异常: {e}")
        data = self._check(self._json(resp, "获取 Token"), "获取 Token")
        if not data.get("access_token"):
            raise WeChatPublishError(f"获取 Token 失败: {data}", response=data)

        self.token = data["access_token"]
        # 提前 5 分钟过期，防止临界点问题
        self.token_expires_at = time.time() + int(data.get("expires_in") or 7200) - 300
        log_event(logger, E.WECHAT_TOKEN_REFRESH, app_id=_mask(self.app_id))
        return self.token

    def _download(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise WeChatPublishError(f"图片下载异常: {e}")
        if resp.status_code >= 400:
            raise WeChatPublishError(f"图片下载失败: HTTP {resp.status_code} {url[:120]}")
        return resp.content

    def upload_cover_image(self, image_url: str) -> str:
        """上传封面图片（永久素材），返回 media_id"""
        token = self.get_access_token()
        content = self._download(image_url)
        files = {"media": (f"cover_{uuid.uuid4().hex}.jpg", content, "image/jpeg")}
        try:
            resp = requests.post(
                f"{self.api_base}/cgi-bin/material/add_material",
                params={"access_token": token, "type": "image"},
                files=files,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WeChatPublishError(f"上传封面异常: {e}")
        result = self._check(self._json(resp, "封面上传"), "封面上传")
        if not result.get("media_id"):
            raise WeChatPublishError(f"封面上传失败: {result}", response=result)
        return result["media_id"]

    def upload_article_image(self, image_url: str) -> Optional[str]:
        """上传正文图片，返回微信 CDN URL，失败返回 None"""
        token = self.get_access_token()
        try:
            content = self._download(image_url)
            files = {"media": (f"img_{uuid.uuid4().hex}.jpg", content, "image/jpeg")}
            resp = requests.post(
                f"{self.api_base}/cgi-bin/media/uploadimg",
                params={"access_token": token},
                files=files,
                timeout=self.timeout,
            )
            result = resp.json()
        except (WeChatPublishError, requests.RequestException, ValueError) as e:
            logger.warning("正文图片上传失败 url=%s error=%s", image_url[:120], e)
            return None
        if result.get("url"):
            return result["url"]
        logger.warning("正文图片上传失败 url=%s resp=%s", image_url[:120], result)
        return None

    def process_html_images(self, html_content: str) -> str:
        """处理 HTML 中的图片（替换为微信 URL）"""
        if not html_content:
            return ""
        soup = BeautifulSoup(html_content, "html.parser")
        count = 0
        for img in soup.find_all("img"):
            src = img.get("src")
            if not src or self.WECHAT_CDN_HOST in src:
                continue
            wechat_url = self.upload_article_image(src)
            if not wechat_url:
                continue
            img["src"] = wechat_url
            for attr in ["data-src", "style", "width", "height"]:
                if img.get(attr):
                    del img[attr]
            count += 1
        if count:
            logger.info("正文图片处理完成，替换 %s 张", count)
        return str(soup)

    @staticmethod
    def _clean_title(raw_title: str, max_bytes: int = 50) -> str:
        """清理控制字符并按字节截断标题（默认 50 bytes，避免 errcode=45003）"""
        title = str(raw_title or "").strip()
        title = re.sub(r"[\r\n\t\v\f]", " ", title)
        title = re.sub(r"[\x00-\x1f\x7f-\x9f]", "", title)
        title = re.sub(r"\s+", " ", title).strip()
        if not title:
            return "未命名草稿"
        if len(title.encode("utf-8")) <= max_bytes:
            return title

        # 逐字符截断，确保不超过字节限制
        parts = []
        used_bytes = 0
        for ch in title:
            ch_bytes = len(ch.encode("utf-8"))
            if used_bytes + ch_bytes > max_bytes:
                break
            parts.append(ch)
            used_bytes += ch_bytes
        return "".join(parts).strip() or "未命名草稿"

    def submit_draft(self, article_data: Dict[str, Any]) -> Dict[str, Any]:
        """提交草稿，返回微信响应（含 media_id）"""
        article_data["title"] = self._clean_title(article_data.get("title"), max_bytes=self.MAX_TITLE_BYTES)
        token = self.get_access_token()
        # 确保中文正常显示
        body = json.dumps({"articles": [article_data]}, ensure_ascii=False).encode("utf-8")
        try:
            resp = requests.post(
                f"{self.api_base}/cgi-bin/draft/add",
                params={"access_token": token},
                data=body,
                headers={"Content-Type": "application/json; charset=utf-8"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise WeChatPublishError(f"提交草稿异常: {e}")
        result = self._check(self._json(resp, "草稿提交"), "草稿提交")
        if not result.get("media_id"):
            raise WeChatPublishError(f"草稿提交失败: {result}", response=result)
        return result

    def publish(self, article: Dict[str, Any]) -> Dict[str, Any]:
        """
        发布文章到公众号草稿箱

        Args:
            article: 至少包含 id / title / content，可选 cover_image_url、author

        Returns:
            {"wechat_article_id": ..., "response": {...}}
        """
        if self.is_mock:
            remote_id = f"wechat_{int(time.time() * 1000)}_{article.get('id')}"
            return {
                "wechat_article_id": remote_id,
                "response": {
                    "mode": MODE_MOCK,
                    "media_id": remote_id,
                    "wechat_url": f"https://mp.weixin.qq.com/s/{remote_id}",
                },
            }

        html_content = self.process_html_images(markdown_to_html(article.get("content") or ""))
        draft = {
            "title": article.get("title") or "",
            "author": article.get("author") or "",
            "digest": _digest(article.get("content") or ""),
            "content": html_content,
            "need_open_comment": 1,
            "only_fans_can_comment": 0,
        }
        cover_url = str(article.get("cover_image_url") or "").strip()
        if cover_url:
            draft["thumb_media_id"] = self.upload_cover_image(cover_url)
        result = self.submit_draft(draft)
        return {"wechat_article_id": result["media_id"], "response": result}


def build_publisher(conf: Optional[Dict[str, Any]] = None) -> WeChatPublisher:
    conf = conf or {}
    return WeChatPublisher(
        mode=conf.get("mode", ""),
        app_id=conf.get("app_id", ""),
        app_secret=conf.get("app_secret", ""),
        api_base=conf.get("api_base", ""),
    )
