"""Command-line entry point."""
import pytest

from nodebus import main as cli


@pytest.fixture(autouse=True)
def no_signal_handlers(monkeypatch):
    monkeypatch.setattr(cli.NodebusApp, "setup_signals", lambda self: None)


def test_interface_show(capsys):
    assert cli.main(["interface", "show", "Vector3"]) == 0
    assert capsys.readouterr().out == "float64 x\nfloat64 y\nfloat64 z\n"


def test_interface_list(capsys):
    assert cli.main(["interface", "list"]) == 0
    out = capsys.readouterr().out.split()
    assert {"ColorNumber", "Text", "Vector3"} <= set(out)


def test_unknown_interface_fails():
    assert cli.main(["interface", "show", "Nope"]) == 1


def test_topic_list_with_nodes(capsys):
    assert cli.main(["topic", "list", "-t", "--with", "talker", "listener", "vector_talker"]) == 0
    assert capsys.readouterr().out == "/topic [Text]\n/vector_topic [Vector3]\n"


def test_topic_info(capsys):
    assert cli.main(["topic", "info", "topic", "--with", "talker", "listener"]) == 0
    assert capsys.readouterr().out == "Type: Text\nPublisher count: 1\nSubscription count: 1\n"


def test_topic_info_of_missing_topic():
    assert cli.main(["topic", "info", "missing"]) == 1


def test_topic_echo_once(capsys):
    assert cli.main(["topic", "echo", "topic", "--once", "--duration", "5", "--with", "talker"]) == 0
    assert "data: 'Hello World: 0'\n---" in capsys.readouterr().out


def test_run_for_a_while():
    assert cli.main(["run", "talker", "listener", "--duration", "0.3"]) == 0


def test_unknown_node_is_rejected():
    with pytest.raises(SystemExit):
        cli.main(["run", "nope"])


@pytest.mark.parametrize("window", ["0", "-3", "ten"])
def test_hz_window_must_be_positive(window):
    with pytest.raises(SystemExit):
        cli.parse_args(["topic", "hz", "topic", "--window", window])
    assert cli.parse_args(["topic", "hz", "topic", "-w", "5"]).window == 5
