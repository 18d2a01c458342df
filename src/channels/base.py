from abc import ABC, abstractmethod

from datamodel import ChannelType

__all__ = ["DeliveryGateway", "ChannelType"]


class DeliveryGateway(ABC):
    """向用户发送一条文本通知

    send 返回 False 或抛出 DeliveryError 都视为发送失败; 调用方只记录日志, 不重试。
    """

    channel_type: ChannelType

    @abstractmethod
    async def send(self, user_id: str, text: str) -> bool:
        pass
