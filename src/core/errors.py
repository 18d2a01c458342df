"""提醒机器人的异常类型

ValidationError / NotFoundError 会被转换成给用户的具体回复;
PersistenceError 只提示用户稍后重试; DeliveryError 仅记录日志。
"""


class ReminderBotError(Exception):
    """所有业务异常的基类"""


class ValidationError(ReminderBotError):
    """截止日期格式错误或已过期"""


class CommandArgumentError(ValidationError):
    """命令参数缺失、重复或未知"""


class NotFoundError(ReminderBotError):
    """要删除或编辑的对象不存在"""


class SubjectNotFoundError(NotFoundError):
    def __init__(self, user_id: str, subject: str) -> None:
        super().__init__(f"用户 {user_id} 不存在科目 [{subject}]")
        self.user_id = user_id
        self.subject = subject


class EventNotFoundError(NotFoundError):
    def __init__(self, user_id: str, subject: str, event: str) -> None:
        super().__init__(f"用户 {user_id} 的科目 [{subject}] 下不存在事件 {event}")
        self.user_id = user_id
        self.subject = subject
        self.event = event


class PersistenceError(ReminderBotError):
    """提醒数据写入磁盘失败, 内存中的修改仍然保留"""


class DeliveryError(ReminderBotError):
    """通知发送失败, 不重试"""


__all__ = [
    "ReminderBotError",
    "ValidationError", "CommandArgumentError",
    "NotFoundError", "SubjectNotFoundError", "EventNotFoundError",
    "PersistenceError", "DeliveryError",
]
