"""
聊天统计命令处理器 (Chat Summary Command Handler)

负责四个只读统计命令的业务逻辑：
- chatsdm: 私聊会话统计
- chatsgc: 群聊会话统计
- gactive: 群内活跃成员排行
- inactive: 群内不活跃成员

所有处理方法返回 (text, mentions, as_reply)，由 main.py 组装消息链。
"""

import asyncio
import time
from astrbot.api import logger
from ..utils import is_direct_jid, is_group_jid, jid_user, format_timestamp

UNKNOWN_GROUP = "Unknown Group"


class ChatSummaryHandler:
    """聊天统计命令处理器"""

    def __init__(self, config, db_manager, executor, metadata_lookup=None):
        """
        初始化聊天统计命令处理器

        Args:
            config: 插件配置
            db_manager: DatabaseManager 实例
            executor: ThreadPoolExecutor 实例
            metadata_lookup: 可选的群元数据查询协程 (jid) -> 带 subject 属性的对象，
                             默认读取本地 group_metadata 表
        """
        self.config = config
        self.db = db_manager
        self.executor = executor
        self.metadata_lookup = metadata_lookup or self._lookup_from_store

    async def _run(self, func, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(self.executor, func, *args)

    async def _lookup_from_store(self, jid):
        return await self._run(self.db.get_group_metadata, jid)

    async def handle_chatsdm(self, own_jid: str) -> tuple:
        """
        处理 chatsdm 命令

        Args:
            own_jid: 机器人自身的 jid，需从结果中排除

        Returns:
            tuple: (text, mentions, as_reply)
        """
        all_chats = await self._run(self.db.get_chat_summary)
        dm_chats = [chat for chat in all_chats if is_direct_jid(chat["jid"], own_jid)]

        if not dm_chats:
            return ("```No direct messages found.```", [], False)

        formatted = [
            f"{i + 1}. FROM: @{jid_user(chat['jid'])}\n"
            f"Messages: {chat['message_count']}\n"
            f"Last Message: {format_timestamp(chat['last_message_timestamp'])}"
            for i, chat in enumerate(dm_chats)
        ]
        mentions = [chat["jid"] for chat in dm_chats]
        return ("```DM Chats:\n\n" + "\n\n".join(formatted) + "```", mentions, False)

    async def handle_chatsgc(self) -> tuple:
        """处理 chatsgc 命令，群名并发解析，单个失败不影响其他行"""
        all_chats = await self._run(self.db.get_chat_summary)
        group_chats = [chat for chat in all_chats if is_group_jid(chat["jid"])]

        if not group_chats:
            return ("```No group chats found.```", [], False)

        names = await asyncio.gather(*[self._resolve_group_name(chat["jid"]) for chat in group_chats])

        formatted = [
            f"{i + 1}. GROUP: {name}\n"
            f"Messages: {chat['message_count']}\n"
            f"Last Message: {format_timestamp(chat['last_message_timestamp'])}"
            for i, (chat, name) in enumerate(zip(group_chats, names))
        ]
        return ("```Group Chats:\n\n" + "\n\n".join(formatted) + "```", [], False)

    async def _resolve_group_name(self, jid: str) -> str:
        try:
            metadata = await self.metadata_lookup(jid)
        except Exception as e:
            logger.debug(f"ChatSync: Group metadata lookup failed for {jid}: {e}")
            return UNKNOWN_GROUP
        return getattr(metadata, "subject", None) or UNKNOWN_GROUP

    async def handle_gactive(self, group_jid: str) -> tuple:
        """处理 gactive 命令"""
        members = await self._run(self.db.get_group_members_message_count, group_jid)
        if not members:
            return ("No active members found.", [], False)

        response = "🏆 Most Active Group Members\n\n"
        for i, member in enumerate(members):
            response += f"{i + 1}. {member['name']}\n"
            response += f"   • Messages: {member['message_count']}\n"
        return (f"```{response}```", [], False)

    async def handle_inactive(self, group_jid: str) -> tuple:
        """
        处理 inactive 命令

        配置 inactive_days > 0 时，只把该天数内的发言计为活跃。
        """
        since_ms = None
        inactive_days = self.config.get("inactive_days", 0)
        if inactive_days and inactive_days > 0:
            since_ms = int((time.time() - inactive_days * 86400) * 1000)

        inactive = await self._run(self.db.get_inactive_group_members, group_jid, since_ms)
        if not inactive:
            return ("*📊 Inactive Members:* No inactive members found.", [], True)

        response = "📊 Inactive Members:\n\n"
        response += f"Total Inactive: {len(inactive)}\n\n"
        for i, jid in enumerate(inactive):
            response += f"{i + 1}. @{jid_user(jid)}\n"
        return (f"```{response}```", list(inactive), False)
