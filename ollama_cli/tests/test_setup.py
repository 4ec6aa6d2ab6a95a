import yaml

from ollama_cli.config.setup import run_first_time_setup, validate_port_str
from ollama_cli.domain.exceptions import NetworkError


def test_validate_port_str():
    assert validate_port_str("11434")
    assert not validate_port_str("0")
    assert not validate_port_str("70000")
    assert not validate_port_str("abc")


def test_setup_writes_config(tmp_path, make_presenter):
    path = tmp_path / "conf" / "ollama-cli.yaml"
    presenter = make_presenter(answers=[False, "gpu-box", "abc", "11434", "mistral", True, False])
    probed = []
    run_first_time_setup(path, presenter, probe=probed.append)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert data == {
        "host": "gpu-box",
        "port": 11434,
        "model": "mistral",
        "verbose": True,
        "color": False,
        "save": False,
    }
    assert presenter.kinds("error") == ["Invalid port"]
    assert [str(e) for e in probed] == ["gpu-box:11434"]
    assert presenter.kinds("info")[-1] == "NOTE: Params can be changed in config file."


def test_setup_reasks_until_server_found(tmp_path, make_presenter):
    path = tmp_path / "ollama-cli.yaml"
    presenter = make_presenter(answers=[True, "nowhere", "1", "localhost", "11434", "llama3:latest", False, True])

    def probe(endpoint):
        if endpoint.host == "nowhere":
            raise NetworkError(code="SERVER_UNREACHABLE", message=f"Invalid server {endpoint}")

    run_first_time_setup(path, presenter, probe=probe)
    assert presenter.kinds("error") == ["Ollama server not found at http://nowhere:1"]
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["host"] == "localhost"
