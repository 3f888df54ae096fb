"""
ChatSync 命令处理器模块

包含：
- ChatSummaryHandler: 聊天统计命令的业务逻辑
- MessageRecorder: 消息记录
"""

from .chat_summary import ChatSummaryHandler
from .message_recorder import MessageRecorder

__all__ = ['ChatSummaryHandler', 'MessageRecorder']
