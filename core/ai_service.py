import json
import os
import re
import time
from typing import Any, Dict, Optional

import requests

from core.config import cfg
from core.errors import UpstreamFailure
from core.log import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TIMEOUT = 180

SYSTEM_PROMPT = (
    "You are a professional content writer specializing in creating engaging articles "
    "for social media platforms like WeChat. Create original, informative, and engaging "
    "content that follows the specified requirements."
)

MOCK_KEYS = ["mock", "mock-key", "test-mock"]


def provider_config() -> Dict[str, Any]:
    base_url = str(
        cfg.get("ai.provider.base_url", "")
        or os.getenv("OPENAI_BASE_URL", "")
        or DEFAULT_BASE_URL
    ).strip()
    api_key = str(cfg.get("ai.provider.api_key", "") or os.getenv("OPENAI_API_KEY", "")).strip()
    model = str(cfg.get("ai.model", "") or DEFAULT_MODEL).strip()
    try:
        timeout = int(cfg.get("ai.provider.timeout", DEFAULT_TIMEOUT) or DEFAULT_TIMEOUT)
    except (TypeError, ValueError):
        timeout = DEFAULT_TIMEOUT
    return {
        "base_url": base_url,
        "api_key": api_key,
        "model": model,
        "timeout": timeout,
    }


def default_model() -> str:
    return provider_config()["model"]


class TextGenerator:
    """OpenAI 兼容的 /chat/completions 调用封装。"""

    def __init__(self, base_url: str = "", api_key: str = "", timeout: int = 0):
        conf = provider_config()
        self.base_url = str(base_url or conf["base_url"]).strip()
        self.api_key = str(api_key or conf["api_key"]).strip()
        self.timeout = int(timeout or conf["timeout"])

    @property
    def is_mock(self) -> bool:
        return self.base_url.lower().startswith("mock://") or self.api_key.lower() in MOCK_KEYS

    def _mock_completion(self, model: str, prompt: str) -> Dict[str, Any]:
        topic = "Untitled Topic"
        m = re.search(r'about "([^"]+)"', prompt or "")
        if m:
            topic = m.group(1).strip()[:80]
        content = (
            f"# {topic}: A Practical Guide\n\n"
            "This is mock generated content used for local development and automated tests.\n\n"
            "## Key Points\n"
            "1. Know your audience and scenario.\n"
            "2. Give actionable steps and clear boundaries.\n"
            "3. Close with a call to action and a review plan.\n\n"
            "## Checklist\n"
            "- Extract the key ideas\n"
            "- Organize the structure\n"
            "- Publish the final draft\n"
        )
        return {
            "content": content,
            "tokens_used": len(prompt.split()) + len(content.split()),
            "model": model,
        }

    def generate(self, prompt: str, model: str = "", max_tokens: int = 1000) -> Dict[str, Any]:
        """返回 {"content", "tokens_used", "model"}，失败抛出 UpstreamFailure。"""
        model = str(model or default_model()).strip()
        if self.is_mock:
            return self._mock_completion(model, prompt)
        if not self.api_key:
            raise UpstreamFailure("Failed to generate article", details="AI provider api key is not configured")

        endpoint = f"{self.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": int(max_tokens),
            "temperature": 0.7,
            "top_p": 1,
            "frequency_penalty": 0.3,
            "presence_penalty": 0.3,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json; charset=utf-8",
        }
        started = time.time()
        try:
            # 显式序列化 JSON，确保中文不被转义
            resp = requests.post(
                endpoint,
                data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamFailure("Failed to generate article", details=f"model request error: {e}")

        if resp.status_code >= 400:
            raise UpstreamFailure(
                "Failed to generate article",
                details=f"model call failed ({resp.status_code}): {resp.text[:300]}",
            )
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamFailure("Failed to generate article", details="model returned invalid JSON")

        choices = data.get("choices") or []
        if not choices:
            raise UpstreamFailure("Failed to generate article", details="model returned no choices")
        content = str((choices[0].get("message") or {}).get("content") or "").strip()
        usage = data.get("usage") or {}
        logger.info(
            "模型调用完成 model=%s tokens=%s cost=%.2fs",
            data.get("model") or model,
            usage.get("total_tokens"),
            time.time() - started,
        )
        return {
            "content": content,
            "tokens_used": usage.get("total_tokens"),
            "model": data.get("model") or model,
        }


def build_text_generator(conf: Optional[Dict[str, Any]] = None) -> TextGenerator:
    conf = conf or {}
    return TextGenerator(
        base_url=conf.get("base_url", ""),
        api_key=conf.get("api_key", ""),
        timeout=conf.get("timeout", 0),
    )
