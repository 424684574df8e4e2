"""统一业务异常模型。

跨模块抛出的业务级错误都继承自 BusinessError。对话回合内部的错误
会在 Conversation 的回合边界被捕获并转换为玩家可见的 system 消息，
不会继续向游戏主循环传播。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 host、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ValidationError(BusinessError):
    """参数或配置校验失败（例如未配置 Ollama host）。"""


class RequestAbortedError(BusinessError):
    """进行中的请求被 abort() 中止；不会再产出任何 FetchResult。"""

    def __init__(self, message: str = "request aborted", **extra):
        super().__init__(code="REQUEST_ABORTED", message=message, http_status=499, **extra)
