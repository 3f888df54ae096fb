"""
工具函数模块
包含会话标识 (jid) 的分类、转换以及时间格式化方法
"""
import datetime

GROUP_SUFFIX = "@g.us"
NEWSLETTER_SUFFIX = "@newsletter"
USER_SUFFIX = "@s.whatsapp.net"
STATUS_BROADCAST = "status@broadcast"


def is_group_jid(jid: str) -> bool:
    return jid.endswith(GROUP_SUFFIX)


def is_direct_jid(jid: str, own_jid: str = None) -> bool:
    """私聊会话：排除群聊、频道、状态广播以及自身"""
    if jid.endswith(GROUP_SUFFIX) or jid.endswith(NEWSLETTER_SUFFIX):
        return False
    if jid == STATUS_BROADCAST:
        return False
    return jid != own_jid


def jid_user(jid: str) -> str:
    return jid.split("@")[0]


def to_group_jid(group_id) -> str:
    """平台群号不带域名时补全群聊后缀"""
    group_id = str(group_id)
    return group_id if "@" in group_id else f"{group_id}{GROUP_SUFFIX}"


def to_user_jid(user_id) -> str:
    user_id = str(user_id)
    return user_id if "@" in user_id else f"{user_id}{USER_SUFFIX}"


def format_timestamp(timestamp_ms) -> str:
    """毫秒时间戳转本地时间字符串"""
    if timestamp_ms is None:
        return "Unknown"
    return datetime.datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")
