"""
ChatSync 核心模块

包含：
- SessionSynchronizer: 远端会话数据同步
- SyncFailed: 同步失败异常
"""

from .session_sync import SessionSynchronizer, SyncFailed

__all__ = ['SessionSynchronizer', 'SyncFailed']
