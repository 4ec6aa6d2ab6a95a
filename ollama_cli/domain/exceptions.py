"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，CLI 层只需捕获这一个基类
即可统一记录日志并提示用户。分类如下：

- TransportError: 网络/HTTP 层错误（连接失败、超时、非 2xx），致命且不重试。
- ProtocolError: 服务端与客户端约定不一致（缺字段、JSON 损坏、缺少 context）。
- ApplicationError: 可预期的业务结果（模型不存在、没有保存的会话）。
- PersistenceError: 本地 SQLite 读写失败，只影响当前命令。
- ValidationError: 配置或参数校验失败。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MODEL_NOT_FOUND"）。
        message: 用户可读错误信息。
        http_status: 对应的 HTTP 状态码（仅传输层错误有意义），默认 400。
        extra: 其他补充字段（例如 endpoint、原始响应片段），只写入日志。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """与推理服务器通信失败。"""


class NetworkError(TransportError):
    """网络层错误，例如连接被拒绝、超时等。"""


class ApiError(TransportError):
    """服务器返回非 2xx，或在响应体中携带了 error 字段。"""


class ProtocolError(BusinessError):
    """响应不符合约定：JSON 损坏、缺少 response/context、流提前结束。"""


class ApplicationError(BusinessError):
    """可恢复的业务结果，使用独立的提示信息而不是崩溃。"""


class ModelNotFoundError(ApplicationError):
    """请求的模型不在服务器的模型目录中。"""


class NoRecordsError(ApplicationError):
    """本地历史库中没有任何会话记录。"""


class PersistenceError(BusinessError):
    """本地会话库（SQLite）读写失败。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
