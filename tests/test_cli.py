import json

from typer.testing import CliRunner

from agentsteps import cli
from agentsteps.llm.provider import StaticResponseProvider

runner = CliRunner()

INSTANT_CONFIG = "dispatch:\n  min_delay_ms: 0\n  max_delay_ms: 0\n"


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def test_dispatch_prints_batch_json(tmp_path):
    tasks = write(
        tmp_path,
        "tasks.json",
        json.dumps(
            [
                {"name": "design", "agent_type": "architect"},
                {"name": "code", "agent_type": "backend_dev"},
            ]
        ),
    )
    config = write(tmp_path, "config.yaml", INSTANT_CONFIG)

    result = runner.invoke(cli.app, ["dispatch", tasks, "--config", config, "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["summary"] == "2 tasks total, 2 succeeded"
    assert {report["status"] for report in data["reports"]} == {"completed"}


def test_dispatch_renders_table(tmp_path):
    tasks = write(tmp_path, "tasks.json", '[{"name": "deploy", "agent_type": "devops"}]')
    config = write(tmp_path, "config.yaml", INSTANT_CONFIG)

    result = runner.invoke(cli.app, ["dispatch", tasks, "-c", config])

    assert result.exit_code == 0, result.output
    assert "1 tasks total, 1 succeeded" in result.output


def test_dispatch_reads_stdin(tmp_path):
    config = write(tmp_path, "config.yaml", INSTANT_CONFIG)

    result = runner.invoke(
        cli.app,
        ["dispatch", "-", "-c", config, "--json"],
        input='[{"name": "page", "agent_type": "frontend_dev"}]',
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["reports"][0]["task"] == "page"


def test_dispatch_malformed_payload_is_single_error(tmp_path):
    tasks = write(tmp_path, "tasks.json", '{"name": "not a list"}')

    result = runner.invoke(cli.app, ["dispatch", tasks])

    assert result.exit_code == 1
    assert json.loads(result.output)["error"].startswith("invalid task list:")


def test_dispatch_missing_file_exits_1(tmp_path):
    result = runner.invoke(cli.app, ["dispatch", str(tmp_path / "nope.json")])

    assert result.exit_code == 1


def test_missing_credential_exits_1(monkeypatch):
    monkeypatch.delenv("MINIMAX_API_KEY", raising=False)

    result = runner.invoke(cli.app, ["chat"])

    assert result.exit_code == 1
    assert "MINIMAX_API_KEY not set" in result.output


def test_bad_config_exits_1(tmp_path):
    config = write(tmp_path, "config.yaml", "dispatch:\n  max_workers: 0\n")

    result = runner.invoke(cli.app, ["parallel", "--config", config])

    assert result.exit_code == 1


def test_chat_command_uses_model(monkeypatch):
    model = StaticResponseProvider(["Hello from the model."])
    monkeypatch.setattr(cli, "build_model", lambda config: model)

    result = runner.invoke(cli.app, ["chat"])

    assert result.exit_code == 0, result.output
    assert "Hello from the model." in result.output


def test_scenario_errors_do_not_change_exit_code(monkeypatch, tmp_path):
    config = write(tmp_path, "config.yaml", INSTANT_CONFIG)
    monkeypatch.setattr(cli, "build_model", lambda config: StaticResponseProvider([]))

    result = runner.invoke(cli.app, ["parallel", "-c", config])

    assert result.exit_code == 0, result.output
    assert "2 scenario(s) skipped" in result.output
