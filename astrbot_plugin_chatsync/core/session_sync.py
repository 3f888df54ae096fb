"""
会话同步器 (Session Synchronizer)

启动时根据配置的 session_id 拉取远端会话数据，与本地主库比对，
不一致时在单个事务内整体替换主库的 session 表。

流程：
1. 未配置 session_id：提示生成二维码，不做任何 I/O
2. 拉取清单并下载会话数据库到临时文件
3. 并发读取主库与临时库的 session_id
4. 相同则无需同步；不同则事务内删除旧数据并批量写入新数据
5. 无论成功失败，关闭临时库连接并删除临时文件

所有失败统一包装为 SyncFailed，对用户只给出通用提示。
"""

import asyncio
import os
from peewee import SqliteDatabase
from astrbot.api import logger
from ..db_manager import read_session_id, read_session_rows

NOTICE_NO_SESSION = "No Session Data\nGenerating QR"
NOTICE_CONNECTED = "Session connected"
NOTICE_FAILED = "No Session Data"

STATUS_NO_SESSION = "no_session"
STATUS_UNCHANGED = "unchanged"
STATUS_REPLACED = "replaced"
STATUS_FAILED = "failed"

STATUS_NOTICES = {
    STATUS_NO_SESSION: NOTICE_NO_SESSION,
    STATUS_UNCHANGED: NOTICE_CONNECTED,
    STATUS_REPLACED: NOTICE_CONNECTED,
    STATUS_FAILED: NOTICE_FAILED,
}


class SyncFailed(Exception):
    """会话同步失败，cause 保留底层异常便于排查"""

    def __init__(self, cause):
        super().__init__(f"session sync failed: {cause!r}")
        self.cause = cause


class SessionSynchronizer:
    """会话数据同步器"""

    def __init__(self, config, db_manager, client, executor):
        """
        Args:
            config: 插件配置
            db_manager: DatabaseManager 实例（主库）
            client: RemoteSessionClient 实例
            executor: ThreadPoolExecutor 实例
        """
        self.config = config
        self.db = db_manager
        self.client = client
        self.executor = executor
        self.temp_path = os.path.join(
            self.db.data_dir, self.config.get("temp_db_name", "temp_database.db")
        )
        self.last_error = None
        # 同一时刻只允许一次同步，避免共用的临时文件被另一轮删除
        self._sync_lock = asyncio.Lock()

    async def sync(self) -> str:
        """执行一次同步，返回同步状态"""
        async with self._sync_lock:
            self.last_error = None
            session_id = self.config.get("session_id", "")
            if not session_id:
                logger.info(f"ChatSync: {NOTICE_NO_SESSION}")
                return STATUS_NO_SESSION

            try:
                status = await self._sync(session_id)
                logger.info(f"ChatSync: {NOTICE_CONNECTED}")
                return status
            except SyncFailed as e:
                self.last_error = e
                logger.warning(f"ChatSync: {NOTICE_FAILED}")
                logger.debug(f"ChatSync: {e}")
                return STATUS_FAILED

    async def _sync(self, session_id: str) -> str:
        loop = asyncio.get_event_loop()
        scratch = None
        try:
            data = await self.client.download_session(session_id)
            await loop.run_in_executor(self.executor, self._write_temp, data)

            scratch = SqliteDatabase(self.temp_path)

            main_id, temp_id = await asyncio.gather(
                loop.run_in_executor(self.executor, self.db.get_session_id),
                loop.run_in_executor(self.executor, read_session_id, scratch),
            )
            if main_id == temp_id:
                return STATUS_UNCHANGED

            rows = await loop.run_in_executor(self.executor, read_session_rows, scratch)
            if not rows:
                raise ValueError("downloaded session store has no session rows")

            await loop.run_in_executor(self.executor, self.db.replace_session_rows, rows)
            logger.info(f"ChatSync: Session data replaced ({main_id} -> {temp_id}, {len(rows)} rows)")
            return STATUS_REPLACED
        except Exception as e:
            raise SyncFailed(e) from e
        finally:
            if scratch is not None:
                scratch.close()
            self._remove_temp()

    def _write_temp(self, data: bytes):
        with open(self.temp_path, "wb") as f:
            f.write(data)

    def _remove_temp(self):
        try:
            os.remove(self.temp_path)
        except OSError as e:
            logger.debug(f"ChatSync: Temp session file cleanup skipped: {e}")
