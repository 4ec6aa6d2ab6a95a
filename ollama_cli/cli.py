"""命令行入口。

负责解析参数、加载配置、组装各组件并驱动问答循环。进程只在这里退出：
任何致命错误都会先记录日志，再通过 Presenter 提示，然后以状态码 1 退出。
"""

from __future__ import annotations

import argparse
import sys
from typing import List, NoReturn, Optional

from ollama_cli import __version__
from ollama_cli.config.settings import Settings, load_settings, resolve_config_file
from ollama_cli.config.setup import run_first_time_setup
from ollama_cli.domain.exceptions import BusinessError
from ollama_cli.infrastructure.logging.logger import get_logger, setup_logger
from ollama_cli.infrastructure.storage.sqlite_store import SqliteConversationStore
from ollama_cli.providers import create_client
from ollama_cli.providers.ollama_client import probe_server
from ollama_cli.services.catalog import ModelCatalogService
from ollama_cli.services.history import ConversationHistory
from ollama_cli.services.session import GenerationSession, SessionConfig
from ollama_cli.ui.presenter import Presenter


SETUP_PROBE_TIMEOUT = 5.0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-chat",
        description="Command line client used to query and manage an Ollama server.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-H", "--host", metavar="HOST", help="Host address for ollama server. e.g.: localhost, 192.168.1.5")
    parser.add_argument("-p", "--port", metavar="PORT", type=int, help="Host port for ollama server. e.g.: 11434")
    parser.add_argument(
        "-m",
        "--model",
        metavar="MODEL",
        help="Model name to query. e.g.: mistral, llama3:70b. Models are not downloaded automatically, use --pull.",
    )
    parser.add_argument("--config", metavar="PATH", help="Alternate YAML config file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=None,
        help="Print model, tokens in prompt, tokens in response and time taken after each response",
    )

    color = parser.add_mutually_exclusive_group()
    color.add_argument("-c", "--color", action="store_true", help="Enable color output")
    color.add_argument("--no-color", action="store_true", help="Disable color output")

    save = parser.add_mutually_exclusive_group()
    save.add_argument("-s", "--save", action="store_true", help="Save conversation for recall on exit")
    save.add_argument("--no-save", action="store_true", help="Do not autosave the conversation")

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--stream", action="store_true", help="Stream the response as it is generated")
    mode.add_argument("--batch", action="store_true", help="Wait for the complete response")

    actions = parser.add_mutually_exclusive_group()
    actions.add_argument("-l", "--list", action="store_true", help="List previous conversations")
    actions.add_argument(
        "-r",
        "--restore",
        action="store_true",
        help="Restore a previous conversation and pick up where you left off (interactive)",
    )
    actions.add_argument(
        "-d",
        "--delete",
        action="store_true",
        help="Delete previous conversations from local storage; irreversible (interactive)",
    )
    actions.add_argument("-P", "--pull", metavar="MODEL", help="Pull model to ollama server for use")
    actions.add_argument("-D", "--delmodel", metavar="MODEL", help="Delete model from ollama server")

    parser.add_argument(
        "-L",
        "--listmodels",
        action="store_true",
        help="List available models on ollama server (HOST:PORT)",
    )
    return parser


def _flag(on: bool, off: bool) -> Optional[bool]:
    if on:
        return True
    if off:
        return False
    return None


def kill(presenter: Presenter, message: str, subsystem: str) -> NoReturn:
    get_logger(subsystem).error(message)
    presenter.error(message)
    sys.exit(1)


def resolve_settings(args: argparse.Namespace, presenter: Presenter) -> Settings:
    config_path = resolve_config_file(args.config)
    if not config_path.exists():
        run_first_time_setup(
            config_path,
            presenter,
            probe=lambda endpoint: probe_server(endpoint, SETUP_PROBE_TIMEOUT),
            logger=get_logger("conf"),
        )
    return load_settings(
        config_file=args.config,
        host=args.host,
        port=args.port,
        model=args.model,
        verbose=args.verbose,
        color=_flag(args.color, args.no_color),
        save=_flag(args.save, args.no_save),
        stream=_flag(args.stream, args.batch),
    )


def run(args: argparse.Namespace, presenter: Presenter) -> int:
    try:
        settings = resolve_settings(args, presenter)
    except BusinessError as e:
        kill(presenter, f"Failed to read config from file or args -> {e.message}", "main")
    try:
        setup_logger(settings)
    except OSError as e:
        kill(presenter, f"Failed to open log file {settings.log_path} -> {e}", "main")
    presenter.color = settings.color
    endpoint = settings.endpoint
    get_logger("conf").info(f'Ollama host {endpoint} with model "{settings.model}"')

    store = SqliteConversationStore(settings.db_path, logger=get_logger("db"))
    history = ConversationHistory(store, presenter, settings.preview_length, logger=get_logger("db"))

    # 历史会话的查看与删除只涉及本地数据库
    if args.list:
        try:
            history.list()
        except BusinessError as e:
            kill(presenter, f"Failed to list conversations -> {e.message}", "db")
        return 0
    if args.delete:
        try:
            history.delete()
        except BusinessError as e:
            kill(presenter, f"Failed to delete conversation -> {e.message}", "db")
        return 0

    ollama_log = get_logger("ollama")
    client = create_client(settings, logger=ollama_log)
    try:
        client.probe()
    except BusinessError:
        kill(presenter, f"Invalid server {endpoint}", "ollama")
    catalog_service = ModelCatalogService(client, presenter, logger=ollama_log)
    try:
        catalog = catalog_service.fetch_catalog()
    except BusinessError as e:
        kill(presenter, f"Failed to get available models from {endpoint} -> {e.message}", "ollama")

    if args.listmodels:
        catalog_service.show_catalog(catalog, settings.model)
        return 0
    if args.pull:
        try:
            catalog_service.pull(args.pull, catalog)
        except BusinessError as e:
            kill(presenter, f'Failed to pull model "{args.pull}" to {endpoint} -> {e.message}', "ollama")
        ollama_log.info(f'Model "{args.pull}" pulled to {endpoint}')
        return 0
    if args.delmodel:
        try:
            catalog_service.delete(args.delmodel, catalog)
        except BusinessError as e:
            kill(presenter, f'Failed to delete model "{args.delmodel}" from {endpoint} -> {e.message}', "ollama")
        msg = f'Model "{args.delmodel}" deleted from {endpoint}'
        ollama_log.info(msg)
        presenter.success(msg)
        return 0

    try:
        model = catalog_service.ensure_available(settings.model, catalog)
    except BusinessError as e:
        kill(presenter, e.message, "ollama")

    config = SessionConfig.from_settings(settings)
    config.model = model
    session = GenerationSession(client, presenter, config, logger=ollama_log)
    if args.restore:
        try:
            context, turns = history.restore()
        except BusinessError as e:
            kill(presenter, f"Failed to restore conversation -> {e.message}", "db")
        session.restore(context, turns)

    chat_loop(session, presenter, endpoint)

    conversation = session.conversation
    if conversation and _want_save(settings, presenter):
        try:
            store.save(conversation, session.context, endpoint, model)
        except BusinessError as e:
            kill(presenter, f"\nFailed to save conversation {endpoint} -> {e.message}", "db")
    presenter.success("Goodbye")
    return 0


def chat_loop(session: GenerationSession, presenter: Presenter, endpoint) -> None:
    """问答循环；Ctrl-C / Ctrl-D 在提问处结束会话。"""

    while True:
        try:
            prompt = presenter.ask("Ask")
        except (KeyboardInterrupt, EOFError):
            presenter.answer_end()
            return
        if not prompt.strip():
            continue
        try:
            session.ask(prompt)
        except BusinessError as e:
            kill(presenter, f"Failed to generate response from {endpoint} -> {e.message}", "ollama")
        try:
            again = presenter.confirm("Ask another question?", default=True)
        except (KeyboardInterrupt, EOFError):
            presenter.answer_end()
            return
        if not again:
            return


def _want_save(settings: Settings, presenter: Presenter) -> bool:
    if settings.save:
        return True
    try:
        return presenter.confirm("Save conversation?", default=False)
    except (KeyboardInterrupt, EOFError):
        return False


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    presenter = Presenter(color=not args.no_color)
    try:
        return run(args, presenter)
    except (KeyboardInterrupt, EOFError):
        kill(presenter, "Interrupted", "main")

