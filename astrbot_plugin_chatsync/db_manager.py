import os
import datetime
from peewee import *
from peewee import chunked
from playhouse.sqlite_ext import JSONField

# SQLite 单条语句最多 999 个变量，按 3 列分批写入
INSERT_BATCH_SIZE = 300


class BaseModel(Model):
    pass


class Session(BaseModel):
    """远端下发的会话数据，session_id 标识整张表的代次，而非行主键"""
    session_id = CharField()
    data_key = TextField()
    data_value = TextField(null=True)

    class Meta:
        table_name = "session"
        primary_key = False


class ChatMessage(BaseModel):
    message_id = CharField(null=True)
    chat_jid = CharField(index=True)    # 会话标识：私聊 / 群聊 / 系统
    sender_jid = CharField(index=True)
    sender_name = CharField(null=True)
    timestamp = BigIntegerField(index=True)  # 毫秒时间戳
    is_from_me = BooleanField(default=False)

    class Meta:
        table_name = "chat_message"
        indexes = (
            # 复合索引：群内按成员统计
            (('chat_jid', 'sender_jid'), False),
        )


class GroupMetadata(BaseModel):
    jid = CharField(primary_key=True)
    subject = CharField(null=True)
    participants = JSONField(default=list)
    updated_at = DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "group_metadata"


def read_session_id(database):
    """读取指定数据库 session 表的第一个 session_id，无数据时返回 None"""
    with database.connection_context():
        return Session.select(Session.session_id).limit(1).scalar(database)


def read_session_rows(database):
    """读取指定数据库 session 表的全部行"""
    with database.connection_context():
        query = Session.select(Session.session_id, Session.data_key, Session.data_value)
        return list(query.dicts().execute(database))


class DatabaseManager:
    def __init__(self, data_dir, db_name="database.db"):
        self.data_dir = data_dir
        self.db_path = os.path.join(self.data_dir, db_name)
        os.makedirs(self.data_dir, exist_ok=True)

        self.db = SqliteDatabase(self.db_path)

        # 将模型与数据库绑定
        Session._meta.database = self.db
        ChatMessage._meta.database = self.db
        GroupMetadata._meta.database = self.db

        self.init_db()

    def init_db(self):
        self.db.connect(reuse_if_open=True)
        self.db.create_tables([Session, ChatMessage, GroupMetadata])
        self.db.close()

    # ---------- 会话数据 ----------

    def get_session_id(self):
        return read_session_id(self.db)

    def get_session_rows(self):
        return read_session_rows(self.db)

    def replace_session_rows(self, rows):
        """在单个事务内清空 session 表并写入新数据，失败时整体回滚"""
        with self.db.connection_context():
            with self.db.atomic():
                Session.delete().execute(self.db)
                for batch in chunked(rows, INSERT_BATCH_SIZE):
                    Session.insert_many(batch).execute(self.db)

    # ---------- 消息记录 ----------

    def save_message(self, **kwargs):
        with self.db.connection_context():
            return ChatMessage.create(**kwargs)

    def get_chat_summary(self):
        """按会话聚合消息数与最后消息时间，最近活跃的会话在前"""
        with self.db.connection_context():
            last_ts = fn.MAX(ChatMessage.timestamp)
            query = (ChatMessage
                     .select(ChatMessage.chat_jid,
                             fn.COUNT(ChatMessage.id).alias("message_count"),
                             last_ts.alias("last_message_timestamp"))
                     .group_by(ChatMessage.chat_jid)
                     .order_by(last_ts.desc()))
            return [
                {
                    "jid": row["chat_jid"],
                    "message_count": row["message_count"],
                    "last_message_timestamp": row["last_message_timestamp"],
                }
                for row in query.dicts()
            ]

    def get_group_members_message_count(self, group_jid):
        """统计群内各成员发言数，按发言数降序"""
        with self.db.connection_context():
            count = fn.COUNT(ChatMessage.id)
            query = (ChatMessage
                     .select(ChatMessage.sender_jid, count.alias("message_count"))
                     .where(ChatMessage.chat_jid == group_jid)
                     .group_by(ChatMessage.sender_jid)
                     .order_by(count.desc(), ChatMessage.sender_jid))
            members = []
            for row in query.dicts():
                members.append({
                    "jid": row["sender_jid"],
                    "name": self._latest_sender_name(group_jid, row["sender_jid"]),
                    "message_count": row["message_count"],
                })
            return members

    def _latest_sender_name(self, group_jid, sender_jid):
        name = (ChatMessage
                .select(ChatMessage.sender_name)
                .where((ChatMessage.chat_jid == group_jid) &
                       (ChatMessage.sender_jid == sender_jid) &
                       (ChatMessage.sender_name.is_null(False)) &
                       (ChatMessage.sender_name != ""))
                .order_by(ChatMessage.timestamp.desc())
                .limit(1)
                .scalar())
        return name or sender_jid.split("@")[0]

    def get_inactive_group_members(self, group_jid, since_ms=None):
        """群成员中在记录内没有发言的成员（since_ms 指定时只统计该时间之后的发言）"""
        with self.db.connection_context():
            metadata = GroupMetadata.get_or_none(GroupMetadata.jid == group_jid)
            if not metadata or not metadata.participants:
                return []

            query = (ChatMessage
                     .select(ChatMessage.sender_jid)
                     .where(ChatMessage.chat_jid == group_jid)
                     .distinct())
            if since_ms is not None:
                query = query.where(ChatMessage.timestamp >= since_ms)
            active = {row.sender_jid for row in query}

            return [jid for jid in metadata.participants if jid not in active]

    # ---------- 群元数据 ----------

    def save_group_metadata(self, jid, subject=None, participants=None):
        with self.db.connection_context():
            GroupMetadata.replace(
                jid=jid,
                subject=subject,
                participants=participants or [],
                updated_at=datetime.datetime.now(),
            ).execute()

    def get_group_metadata(self, jid):
        with self.db.connection_context():
            return GroupMetadata.get_or_none(GroupMetadata.jid == jid)
