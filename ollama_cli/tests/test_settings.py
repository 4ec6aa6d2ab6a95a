import pytest
import yaml

from ollama_cli.config.config_file import read_config_file, write_config_file
from ollama_cli.config.settings import load_settings, resolve_config_file
from ollama_cli.domain.exceptions import ValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for key in ("HOST", "PORT", "MODEL", "VERBOSE", "SAVE", "STREAM", "COLOR", "CONFIG_FILE", "DATA_DIR", "LOG_DIR"):
        monkeypatch.delenv(f"OLLAMA_CLI_{key}", raising=False)
    monkeypatch.chdir(tmp_path)


def _write(tmp_path, **values):
    path = tmp_path / "ollama-cli.yaml"
    write_config_file(path, values)
    return path


def test_defaults_without_config_file(tmp_path):
    s = load_settings(config_file=str(tmp_path / "absent.yaml"))
    assert s.host == "localhost"
    assert s.port == 11434
    assert s.stream is True
    assert s.save is False
    assert str(s.endpoint) == "localhost:11434"


def test_precedence_args_over_env_over_yaml(tmp_path, monkeypatch):
    path = _write(tmp_path, host="yamlhost", port=1234, model="mistral", verbose=True)

    s = load_settings(config_file=str(path))
    assert (s.host, s.port, s.model, s.verbose) == ("yamlhost", 1234, "mistral", True)

    monkeypatch.setenv("OLLAMA_CLI_HOST", "envhost")
    s = load_settings(config_file=str(path))
    assert s.host == "envhost"
    assert s.port == 1234

    s = load_settings(config_file=str(path), host="argshost", verbose=None)
    assert s.host == "argshost"
    assert s.verbose is True


def test_config_file_from_env(tmp_path, monkeypatch):
    path = _write(tmp_path, model="phi3")
    monkeypatch.setenv("OLLAMA_CLI_CONFIG_FILE", str(path))
    assert resolve_config_file() == path
    assert load_settings().model == "phi3"


def test_host_normalization(tmp_path):
    s = load_settings(config_file=str(tmp_path / "absent.yaml"), host="http://10.0.0.5/")
    assert s.host == "10.0.0.5"
    assert s.endpoint.base_url == "http://10.0.0.5:11434"


def test_invalid_values_raise_validation_error(tmp_path):
    path = _write(tmp_path, port=70000)
    with pytest.raises(ValidationError) as exc:
        load_settings(config_file=str(path))
    assert exc.value.code == "INVALID_CONFIG"
    assert "port" in exc.value.message


def test_paths_follow_dirs(tmp_path):
    s = load_settings(
        config_file=str(tmp_path / "absent.yaml"),
        data_dir=str(tmp_path / "data"),
        log_dir=str(tmp_path / "logs"),
    )
    assert s.db_path == tmp_path / "data" / "history.db"
    assert s.log_path == tmp_path / "logs" / "ollama-cli.log"


def test_read_config_file(tmp_path):
    assert read_config_file(tmp_path / "none.yaml") == {}

    bad = tmp_path / "bad.yaml"
    bad.write_text("host: [unclosed", encoding="utf-8")
    with pytest.raises(ValidationError):
        read_config_file(bad)

    scalar = tmp_path / "scalar.yaml"
    scalar.write_text("just text", encoding="utf-8")
    with pytest.warns(UserWarning):
        assert read_config_file(scalar) == {}


def test_write_config_file_keeps_order(tmp_path):
    path = tmp_path / "nested" / "conf.yaml"
    write_config_file(path, {"host": "h", "port": 1, "model": "m"})
    assert list(yaml.safe_load(path.read_text(encoding="utf-8"))) == ["host", "port", "model"]
