from contextlib import contextmanager
from typing import Any, List, Optional

import pytest

from ollama_cli.domain.models import ModelInfo, ServerEndpoint


class RecordingProgress:
    def __init__(self):
        self.layers: List[tuple] = []
        self.updates: List[tuple] = []

    def new_layer(self, index, label, total=None):
        self.layers.append((index, label, total))

    def update(self, completed, total):
        self.updates.append((completed, total))


class RecordingPresenter:
    """记录所有输出的 Presenter 替身，交互答案通过列表预置。"""

    def __init__(self, answers: Optional[List[Any]] = None):
        self.color = False
        self.events: List[tuple] = []
        self.answers = list(answers or [])
        self.progress = RecordingProgress()

    def _emit(self, kind, payload=None):
        self.events.append((kind, payload))

    def kinds(self, kind):
        return [p for k, p in self.events if k == kind]

    def info(self, message):
        self._emit("info", message)

    def success(self, message):
        self._emit("success", message)

    def error(self, message):
        self._emit("error", message)

    def user_turn(self, content):
        self._emit("user", content)

    def answer(self, text):
        self._emit("answer", text)

    def answer_delta(self, text):
        self._emit("delta", text)

    def answer_end(self):
        self._emit("end")

    def stats(self, stats):
        self._emit("stats", stats)

    def table(self, title, headers, rows):
        self._emit("table", list(rows))

    @contextmanager
    def status(self, message):
        self._emit("status", message)
        yield

    @contextmanager
    def pull_progress(self, name):
        self._emit("pull", name)
        yield self.progress

    def _next(self, kind, prompt):
        self._emit(kind, prompt)
        return self.answers.pop(0)

    def ask(self, prompt, default=None):
        return self._next("ask", prompt)

    def confirm(self, prompt, default=None):
        return self._next("confirm", prompt)

    def select(self, prompt, items):
        return self._next("select", prompt)

    def multi_select(self, prompt, items):
        return self._next("multi_select", prompt)


class FakeClient:
    """实现 InferenceClient 协议的内存替身，记录所有调用。"""

    def __init__(self, models=None, generate=None, stream=None, pull=None):
        self.endpoint = ServerEndpoint(host="localhost", port=11434)
        self.models = [ModelInfo(name=n) for n in (models or [])]
        self.batch_result = generate
        self.stream_chunks = list(stream or [])
        self.pull_records = list(pull or [])
        self.calls: List[tuple] = []

    def probe(self):
        self.calls.append(("probe",))

    def list_models(self):
        self.calls.append(("list_models",))
        return list(self.models)

    def generate(self, model, prompt, context=None):
        self.calls.append(("generate", model, prompt, context))
        return self.batch_result

    def generate_stream(self, model, prompt, context=None):
        self.calls.append(("generate_stream", model, prompt, context))
        return iter(self.stream_chunks)

    def pull_stream(self, name):
        self.calls.append(("pull", name))
        return iter(self.pull_records)

    def delete(self, name):
        self.calls.append(("delete", name))


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def make_client():
    return FakeClient


@pytest.fixture
def make_presenter():
    return RecordingPresenter
