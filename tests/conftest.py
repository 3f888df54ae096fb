import sys
import sqlite3
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from astrbot_plugin_chatsync.db_manager import DatabaseManager


@pytest.fixture
def temp_db():
    """创建一个临时的文件数据库用于测试"""
    with tempfile.TemporaryDirectory() as temp_dir:
        db = DatabaseManager(temp_dir)
        yield db
        db.db.close()


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=True)


def make_session_store(path, rows, with_table=True):
    """用 sqlite3 生成一个会话数据库文件，返回文件内容"""
    Path(path).unlink(missing_ok=True)
    conn = sqlite3.connect(path)
    try:
        if with_table:
            conn.execute("CREATE TABLE session (session_id TEXT, data_key TEXT, data_value TEXT)")
            conn.executemany(
                "INSERT INTO session (session_id, data_key, data_value) VALUES (?, ?, ?)",
                rows,
            )
        else:
            conn.execute("CREATE TABLE other (id INTEGER)")
        conn.commit()
    finally:
        conn.close()
    return Path(path).read_bytes()


@pytest.fixture
def session_store_bytes(tmp_path):
    def _build(rows, with_table=True):
        return make_session_store(tmp_path / "bundle.db", rows, with_table)
    return _build
