"""首次运行时的交互式配置向导。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from ollama_cli.config.config_file import write_config_file
from ollama_cli.domain.exceptions import BusinessError
from ollama_cli.domain.models import ServerEndpoint
from ollama_cli.ui.presenter import Presenter


DEFAULT_HOST = "localhost"
DEFAULT_PORT = "11434"
DEFAULT_MODEL = "llama3:latest"


def validate_port_str(value: str) -> bool:
    try:
        port = int(value)
    except ValueError:
        return False
    return 1 <= port <= 65535


def run_first_time_setup(
    path: Path,
    presenter: Presenter,
    probe: Callable[[ServerEndpoint], None],
    logger: logging.Logger | None = None,
) -> None:
    """询问基础配置并写入 path。

    服务器地址会反复询问，直到 probe 能连通为止。
    """

    log = logger or logging.getLogger("ollama_cli.conf")
    presenter.info("Configuration not detected: initiating config setup")
    color = presenter.confirm("Enable color", default=True)
    presenter.color = color
    while True:
        host = presenter.ask("Enter Ollama server address", default=DEFAULT_HOST)
        port_str = presenter.ask("Enter Ollama server port", default=DEFAULT_PORT)
        while not validate_port_str(port_str):
            presenter.error("Invalid port")
            port_str = presenter.ask("Enter Ollama server port", default=DEFAULT_PORT)
        endpoint = ServerEndpoint(host=host, port=int(port_str))
        try:
            probe(endpoint)
            break
        except BusinessError as e:
            log.warning("setup.probe_failed", extra={"extra": {"endpoint": str(endpoint), "error": e.message}})
            presenter.error(f"Ollama server not found at {endpoint.base_url}")
    model = presenter.ask("Enter model", default=DEFAULT_MODEL)
    verbose = presenter.confirm("Enable verbose output", default=True)
    save = presenter.confirm("Enable autosave on exit", default=True)
    write_config_file(
        path,
        {
            "host": endpoint.host,
            "port": endpoint.port,
            "model": model,
            "verbose": verbose,
            "color": color,
            "save": save,
        },
    )
    log.info("setup.config_written", extra={"extra": {"path": str(path)}})
    presenter.info("NOTE: Params can be changed in config file.")
