"""终端展示与交互。

Presenter 是所有用户可见输出的唯一出口：会话内容、状态、错误、进度条和
交互式提问都经过这里。color 开关决定使用彩色 + Markdown 渲染还是纯文本，
调用方不需要关心具体样式。
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from rich.console import Console
from rich.markdown import Markdown
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TransferSpeedColumn,
)
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text

from ollama_cli.domain.models import GenerationStats


class PullProgressView:
    """模型下载进度：每个下载层一行进度条。"""

    def __init__(self, progress: Optional[Progress]):
        self._progress = progress
        self._task: Optional[TaskID] = None
        self._total: Optional[int] = None

    def new_layer(self, index: int, label: str, total: Optional[int] = None) -> None:
        if self._progress is None:
            return
        if self._task is not None and self._total:
            self._progress.update(self._task, completed=self._total)
        self._total = total
        description = f"[{index}] {label}"
        self._task = self._progress.add_task(description, total=total or None)

    def update(self, completed: Optional[int], total: Optional[int]) -> None:
        if self._progress is None or self._task is None:
            return
        if total:
            self._total = total
        self._progress.update(self._task, completed=completed or 0, total=self._total or None)


class Presenter:
    def __init__(
        self,
        color: bool = True,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.color = color
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def _style(self, style: str) -> Optional[str]:
        return style if self.color else None

    # ---- 输出通道 ----

    def info(self, message: str) -> None:
        self.console.print(message, style=self._style("yellow italic"), markup=False)

    def success(self, message: str) -> None:
        self.console.print(message, style=self._style("green"), markup=False)

    def error(self, message: str) -> None:
        self.err_console.print(message, style=self._style("red"), markup=False)

    def user_turn(self, content: str) -> None:
        self.console.print(f"\n{content}\n", style=self._style("green"), markup=False)

    def answer(self, text: str) -> None:
        """渲染一条完整回答（批量模式或恢复会话时）。"""

        if self.color:
            self.console.print(Markdown(text, code_theme="monokai"))
        else:
            self.console.print(text, markup=False)

    def answer_delta(self, text: str) -> None:
        """流式模式下的增量回答，立即输出、不换行。"""

        self.console.print(text, end="", style=self._style("cyan"), markup=False, soft_wrap=True)

    def answer_end(self) -> None:
        self.console.print()

    def stats(self, stats: GenerationStats) -> None:
        self.info("\nDone")
        self.info(
            f"* Model: {stats.model}\n"
            f"* Tokens in prompt: {stats.prompt_tokens}\n"
            f"* Tokens in response: {stats.response_tokens}\n"
            f"* Time taken: {stats.seconds:.3f}s"
        )

    def table(self, title: str, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        table = Table(title=title, show_lines=False, header_style=self._style("bold") or "")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*[str(cell) for cell in row])
        self.console.print(table)

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        spinner = "dots" if self.color else "line"
        with self.console.status(Text(message, style=self._style("green") or ""), spinner=spinner):
            yield

    @contextmanager
    def pull_progress(self, name: str) -> Iterator[PullProgressView]:
        self.success(f'Downloading "{name}"')
        columns = [
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
        ]
        with Progress(*columns, console=self.console, transient=False) as progress:
            yield PullProgressView(progress)

    # ---- 交互 ----

    def ask(self, prompt: str, default: Optional[str] = None) -> str:
        label = Text(prompt, style=self._style("bold cyan") or "")
        if default is None:
            return Prompt.ask(label, console=self.console)
        return Prompt.ask(label, console=self.console, default=default)

    def confirm(self, prompt: str, default: Optional[bool] = None) -> bool:
        label = Text(prompt, style=self._style("bold cyan") or "")
        if default is None:
            return Confirm.ask(label, console=self.console)
        return Confirm.ask(label, console=self.console, default=default)

    def select(self, prompt: str, items: Sequence[str]) -> int:
        """单选，返回从 0 开始的下标。"""

        self._print_items(items)
        choices = [str(i) for i in range(1, len(items) + 1)]
        label = Text(prompt, style=self._style("bold cyan") or "")
        answer = Prompt.ask(label, console=self.console, choices=choices, show_choices=False)
        return int(answer) - 1

    def multi_select(self, prompt: str, items: Sequence[str]) -> List[int]:
        """多选，输入逗号分隔的编号，留空表示不选。"""

        self._print_items(items)
        label = Text(f"{prompt} (comma separated numbers, blank for none)", style=self._style("bold cyan") or "")
        while True:
            raw = Prompt.ask(label, console=self.console, default="", show_default=False)
            picked = parse_selection(raw, len(items))
            if picked is not None:
                return picked
            self.error(f"Enter numbers between 1 and {len(items)}")

    def _print_items(self, items: Sequence[str]) -> None:
        for i, item in enumerate(items, start=1):
            self.console.print(f"{i:>3}. {item}", markup=False)


def parse_selection(raw: str, count: int) -> Optional[List[int]]:
    """把 "1, 3,2" 解析为去重且有序的 0 基下标；非法输入返回 None。"""

    picked: List[int] = []
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit():
            return None
        idx = int(part)
        if idx < 1 or idx > count:
            return None
        if idx - 1 not in picked:
            picked.append(idx - 1)
    return sorted(picked)
