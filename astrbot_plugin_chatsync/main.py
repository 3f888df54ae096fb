from astrbot.api.event import filter, AstrMessageEvent
from astrbot.api.star import Context, Star, StarTools, register
from astrbot.api import AstrBotConfig, logger
import astrbot.api.message_components as Comp
from concurrent.futures import ThreadPoolExecutor
import asyncio

from .db_manager import DatabaseManager
from .core import SessionSynchronizer
from .core.session_sync import STATUS_NOTICES
from .handlers import ChatSummaryHandler, MessageRecorder
from .services import RemoteSessionClient, DEFAULT_SESSION_API_URL
from .utils import jid_user, to_group_jid, to_user_jid


@register("astrbot_plugin_chatsync", "chatsync", "会话同步与聊天统计", "1.0.0")
class ChatSyncPlugin(Star):
    def __init__(self, context: Context, config: AstrBotConfig):
        super().__init__(context)
        self.config = config
        self.plugin_data_dir = StarTools.get_data_dir()

        self.executor = ThreadPoolExecutor(max_workers=4)
        self.db = DatabaseManager(self.plugin_data_dir, self.config.get("db_name", "database.db"))

        client = RemoteSessionClient(
            self.config.get("session_api_url", DEFAULT_SESSION_API_URL),
            self.config.get("session_fetch_timeout", 30),
        )
        self.session_sync = SessionSynchronizer(self.config, self.db, client, self.executor)
        self.summary = ChatSummaryHandler(self.config, self.db, self.executor)
        self.recorder = MessageRecorder(self.config, self.db, self.executor)

        self._tasks = []
        if self.config.get("sync_on_startup", True):
            self._tasks.append(asyncio.create_task(self.session_sync.sync()))

    def _build_chain(self, event: AstrMessageEvent, text: str, mentions: list, as_reply: bool):
        """组装消息链：可选引用原消息，正文后附带 @ 提及"""
        chain = []
        if as_reply and getattr(event.message_obj, "message_id", None):
            chain.append(Comp.Reply(id=event.message_obj.message_id))
        chain.append(Comp.Plain(text))
        for jid in mentions:
            chain.append(Comp.At(qq=jid_user(jid)))
        return chain

    @filter.event_message_type(filter.EventMessageType.ALL)
    async def on_message(self, event: AstrMessageEvent):
        """被动记录所有消息到本地消息库"""
        await self.recorder.record(event)

    @filter.permission_type(filter.PermissionType.ADMIN)
    @filter.command("session_sync")
    async def session_sync_command(self, event: AstrMessageEvent):
        """[管理员] 立即从远端同步会话数据"""
        status = await self.session_sync.sync()
        yield event.plain_result(STATUS_NOTICES[status])

    @filter.permission_type(filter.PermissionType.ADMIN)
    @filter.command("chatsdm")
    async def chats_dm(self, event: AstrMessageEvent):
        """[管理员] 查看私聊会话统计"""
        own_jid = to_user_jid(event.get_self_id())
        text, mentions, as_reply = await self.summary.handle_chatsdm(own_jid)
        yield event.chain_result(self._build_chain(event, text, mentions, as_reply))

    @filter.permission_type(filter.PermissionType.ADMIN)
    @filter.command("chatsgc")
    async def chats_gc(self, event: AstrMessageEvent):
        """[管理员] 查看群聊会话统计"""
        text, _, _ = await self.summary.handle_chatsgc()
        yield event.plain_result(text)

    @filter.event_message_type(filter.EventMessageType.GROUP_MESSAGE)
    @filter.command("gactive")
    async def group_active(self, event: AstrMessageEvent):
        """查看本群最活跃的成员（自机器人开始记录起）"""
        group_jid = to_group_jid(event.get_group_id())
        text, _, _ = await self.summary.handle_gactive(group_jid)
        yield event.plain_result(text)

    @filter.event_message_type(filter.EventMessageType.GROUP_MESSAGE)
    @filter.command("inactive")
    async def group_inactive(self, event: AstrMessageEvent):
        """查看本群不活跃的成员"""
        group_jid = to_group_jid(event.get_group_id())
        text, mentions, as_reply = await self.summary.handle_inactive(group_jid)
        yield event.chain_result(self._build_chain(event, text, mentions, as_reply))

    async def terminate(self):
        for task in self._tasks:
            if not task.done():
                task.cancel()
        self.executor.shutdown(wait=False)
        logger.info("ChatSync: Plugin terminated")
