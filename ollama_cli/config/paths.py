"""项目目录与文件位置。"""

from pathlib import Path

from platformdirs import user_config_dir, user_data_dir


APP_NAME = "ollama-cli"

CONF_FILE = "ollama-cli.yaml"
LOG_FILE = "ollama-cli.log"
DB_FILE = "history.db"


def config_dir() -> Path:
    return Path(user_config_dir(APP_NAME))


def data_dir() -> Path:
    return Path(user_data_dir(APP_NAME))


def default_config_file() -> Path:
    return config_dir() / CONF_FILE
