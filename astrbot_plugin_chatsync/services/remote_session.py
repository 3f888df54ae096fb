"""
远端会话数据客户端 (Remote Session Client)

负责从会话服务拉取会话清单并下载会话数据库文件。

接口约定：
- GET {base_url}/{session_id} 返回 {"files": [{"url": "..."}, ...]}
- 取第一个文件的 url 下载二进制内容
"""

import aiohttp
from astrbot.api import logger

DEFAULT_SESSION_API_URL = "https://xstro-api-40f56748ff31.herokuapp.com/session"


class RemoteSessionClient:
    """会话服务 HTTP 客户端"""

    def __init__(self, base_url: str = DEFAULT_SESSION_API_URL, timeout: float = 30):
        self.base_url = (base_url or DEFAULT_SESSION_API_URL).rstrip("/")
        self.timeout = timeout

    def manifest_url(self, session_id: str) -> str:
        return f"{self.base_url}/{session_id}"

    async def fetch_manifest(self, session: aiohttp.ClientSession, session_id: str) -> dict:
        async with session.get(self.manifest_url(session_id)) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    @staticmethod
    def first_file_url(manifest) -> str:
        """从清单中取出第一个文件地址，结构不符时抛出 ValueError"""
        files = manifest.get("files") if isinstance(manifest, dict) else None
        if not isinstance(files, list) or not files:
            raise ValueError("session manifest has no files")
        first = files[0]
        url = first.get("url") if isinstance(first, dict) else None
        if not isinstance(url, str) or not url:
            raise ValueError("session manifest entry has no url")
        return url

    async def download_session(self, session_id: str) -> bytes:
        """
        下载会话数据库文件

        Args:
            session_id: 会话标识

        Returns:
            bytes: 会话数据库文件内容
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            manifest = await self.fetch_manifest(session, session_id)
            url = self.first_file_url(manifest)
            logger.debug(f"ChatSync: Downloading session bundle from {url}")
            async with session.get(url) as resp:
                resp.raise_for_status()
                return await resp.read()
