"""请求体编码与流式响应分帧。

- encode_postdata: 把字段映射编码成单层 JSON 对象。context 与 stream 两个字段
  由调用方预先序列化（"[1,2,3]"、"false"），这里原样输出，其余字段按 JSON 字符串输出。
- JsonStreamDeframer: 服务器按任意边界切分的 JSON 记录流 → 完整的 JSON 对象。
  扫描时跟踪嵌套深度与字符串/转义状态，字符串里的 "}" 恰好落在分块末尾
  也不会被误判为记录结束。
- decode_record: 批量模式下解析单个完整响应体。

任何无法解析的内容都抛出 ProtocolError；原始文本只进入日志，不展示给用户。
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from ollama_cli.domain.exceptions import ProtocolError


RAW_FIELDS = frozenset({"context", "stream"})

MALFORMED_MESSAGE = "Malformed response from server"


def encode_postdata(fields: Mapping[str, str]) -> str:
    segments = []
    for key, value in fields.items():
        if key in RAW_FIELDS:
            segments.append(f"{json.dumps(key)}:{value}")
        else:
            segments.append(f"{json.dumps(key)}:{json.dumps(value, ensure_ascii=False)}")
    return "{" + ",".join(segments) + "}"


def decode_record(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ProtocolError(code="MALFORMED_JSON", message=MALFORMED_MESSAGE, raw=_clip(text)) from e
    if not isinstance(data, dict):
        raise ProtocolError(code="MALFORMED_JSON", message=MALFORMED_MESSAGE, raw=_clip(text))
    return data


class JsonStreamDeframer:
    """增量 JSON 对象分帧器。

    feed() 接收任意切分的文本块，按顺序返回其中已完整的顶层对象；
    未完成的部分保留在缓冲区里，等待下一块。
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._start: Optional[int] = None
        self._depth = 0
        self._in_string = False
        self._escape = False

    @property
    def pending(self) -> bool:
        """缓冲区中是否还有未完成的记录。"""

        return self._start is not None or bool(self._buffer[self._pos:].strip())

    def feed(self, text: str) -> List[Dict[str, Any]]:
        self._buffer += text
        records: List[Dict[str, Any]] = []
        buf = self._buffer
        i = self._pos
        while i < len(buf):
            ch = buf[i]
            if self._depth == 0:
                if ch.isspace():
                    i += 1
                    continue
                if ch != "{":
                    raise ProtocolError(code="MALFORMED_JSON", message=MALFORMED_MESSAGE, raw=_clip(buf[i:]))
                self._start = i
                self._depth = 1
            elif self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    records.append(decode_record(buf[self._start:i + 1]))
                    self._start = None
            i += 1
        # 只保留尚未完成的记录
        if self._start is None:
            self._buffer = ""
            self._pos = 0
        else:
            self._buffer = buf[self._start:]
            self._pos = i - self._start
            self._start = 0
        return records

    def finish(self) -> None:
        """流结束时调用；残留半条记录说明响应被截断。"""

        if self.pending:
            raise ProtocolError(
                code="TRUNCATED_STREAM",
                message=MALFORMED_MESSAGE,
                raw=_clip(self._buffer),
            )


def _clip(text: str, limit: int = 200) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text
