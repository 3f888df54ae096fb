"""
消息记录处理器 (Message Recorder)

将收到的每条消息写入本地消息库，供统计命令查询。
记录失败只写日志，不影响正常消息处理。
"""

import asyncio
import time
from astrbot.api import logger
from ..utils import to_group_jid, to_user_jid


class MessageRecorder:
    """消息记录处理器"""

    def __init__(self, config, db_manager, executor):
        self.config = config
        self.db = db_manager
        self.executor = executor

    def build_record(self, event) -> dict:
        """从消息事件提取待写入的字段"""
        group_id = event.get_group_id()
        sender_jid = to_user_jid(event.get_sender_id())
        chat_jid = to_group_jid(group_id) if group_id else sender_jid

        message_obj = getattr(event, "message_obj", None)
        ts = getattr(message_obj, "timestamp", None) or time.time()
        self_id = event.get_self_id()

        return {
            "message_id": getattr(message_obj, "message_id", None),
            "chat_jid": chat_jid,
            "sender_jid": sender_jid,
            "sender_name": event.get_sender_name() or None,
            "timestamp": int(ts * 1000),
            "is_from_me": bool(self_id) and sender_jid == to_user_jid(self_id),
        }

    async def record(self, event) -> bool:
        if not self.config.get("enable_message_recording", True):
            return False

        try:
            record = self.build_record(event)
            loop = asyncio.get_event_loop()
            await loop.run_in_executor(self.executor, lambda: self.db.save_message(**record))
            return True
        except Exception as e:
            logger.error(f"ChatSync: Record message failed: {e}")
            return False
