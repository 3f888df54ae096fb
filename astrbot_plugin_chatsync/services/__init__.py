"""
服务层模块
包含外部服务客户端
"""

from .remote_session import RemoteSessionClient, DEFAULT_SESSION_API_URL

__all__ = ['RemoteSessionClient', 'DEFAULT_SESSION_API_URL']
