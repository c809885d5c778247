import json

import yaml
from typer.testing import CliRunner

from agentcore_cli import main as cli_main
from agentcore_iac import load_stack_config_from_file, validate_stack_config

runner = CliRunner()


VALID_DOC = {
    "stackName": "team",
    "agents": [
        {"name": "research", "containerImage": "img/research"},
        {"name": "orchestration", "containerImage": "img/orch", "isDefault": True},
    ],
}


def _write_json(path, doc) -> str:
    path.write_text(json.dumps(doc), encoding="utf-8")
    return str(path)


class _FakeCloudFormation:
    def __init__(self, outputs):
        self.outputs = outputs
        self.calls = []

    def describe_stacks(self, **kwargs):
        self.calls.append(kwargs)
        return {"Stacks": [{"StackName": kwargs["StackName"], "Outputs": self.outputs}]}


class _FakeSession:
    def __init__(self, cf):
        self.cf = cf

    def client(self, name):
        assert name == "cloudformation"
        return self.cf


def _no_dotenv(monkeypatch):
    monkeypatch.setattr("agentcore_cli.main.load_dotenv", lambda *a, **k: True)


def test_validate_ok(tmp_path):
    path = _write_json(tmp_path / "agentcore.json", VALID_DOC)

    result = runner.invoke(cli_main.app, ["validate", path])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["stackName"] == "team"
    assert payload["agentCount"] == 2
    assert payload["defaultAgent"] == "orchestration"


def test_validate_reports_every_issue(tmp_path):
    doc = {
        "stackName": "team",
        "agents": [
            {"name": "a", "containerImage": "img", "memoryMB": 3},
            {"name": "a", "containerImage": "img"},
        ],
    }
    path = _write_json(tmp_path / "agentcore.json", doc)

    result = runner.invoke(cli_main.app, ["--plain-json", "--quiet", "validate", path])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert [i["code"] for i in payload["issues"]] == ["agent-memory-invalid", "agent-name-duplicate"]
    assert payload["issues"][0]["field"] == "agents[0].memoryMB"


def test_validate_uses_config_env(tmp_path, monkeypatch):
    path = _write_json(tmp_path / "from-env.json", VALID_DOC)
    monkeypatch.setenv("AGENTCORE_CONFIG", path)

    result = runner.invoke(cli_main.app, ["validate"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["config"] == path


def test_show_yaml_includes_defaults(tmp_path):
    path = _write_json(tmp_path / "agentcore.json", VALID_DOC)

    result = runner.invoke(cli_main.app, ["show", path, "--format", "yaml"])

    assert result.exit_code == 0, result.output
    doc = yaml.safe_load(result.stdout)
    assert doc["agents"][0]["memoryMB"] == 512
    assert doc["vpc"]["vpcCidr"] == "10.0.0.0/16"
    assert doc["observability"]["provider"] == "cloudwatch"
    assert doc["removalPolicy"] == "destroy"


def test_example_then_convert_round_trip(tmp_path):
    yaml_path = tmp_path / "agentcore.yaml"
    json_path = tmp_path / "agentcore.json"

    result = runner.invoke(cli_main.app, ["--quiet", "example", str(yaml_path)])
    assert result.exit_code == 0, result.output
    validate_stack_config(load_stack_config_from_file(yaml_path))

    result = runner.invoke(cli_main.app, ["--quiet", "convert", str(yaml_path), str(json_path)])
    assert result.exit_code == 0, result.output
    assert load_stack_config_from_file(json_path) == load_stack_config_from_file(yaml_path)


def test_main_refuses_to_overwrite_without_force(tmp_path, monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    path = tmp_path / "agentcore.yaml"
    path.write_text("keep me\n", encoding="utf-8")

    rc = cli_main.main(["example", str(path)])

    assert rc == 2
    assert "refusing to overwrite" in capsys.readouterr().err
    assert path.read_text(encoding="utf-8") == "keep me\n"

    assert cli_main.main(["--quiet", "example", str(path), "--force"]) == 0
    assert "stackName" in path.read_text(encoding="utf-8")


def test_main_unsupported_extension_is_usage_error(tmp_path, monkeypatch):
    _no_dotenv(monkeypatch)
    assert cli_main.main(["example", str(tmp_path / "agentcore.toml")]) == 2


def test_main_parse_error_exit_code(tmp_path, monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    path = tmp_path / "broken.json"
    path.write_text('{"stackName": ', encoding="utf-8")

    rc = cli_main.main(["validate", str(path)])

    assert rc == 1
    assert "cannot parse config" in capsys.readouterr().err


def test_main_schema_error_exit_code(tmp_path, monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    path = _write_json(tmp_path / "agentcore.json", {"stackName": "s", "agents": [], "extra": 1})

    assert cli_main.main(["validate", path]) == 1
    assert "extra" in capsys.readouterr().err


def test_main_invalid_config_exit_code(tmp_path, monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    path = _write_json(tmp_path / "agentcore.json", {"stackName": "s", "agents": []})

    assert cli_main.main(["validate", path]) == 1
    assert "agents-required" in capsys.readouterr().err


def test_main_loads_dotenv(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr("agentcore_cli.main.load_dotenv", lambda *a, **k: calls.append((a, k)) or True)
    path = _write_json(tmp_path / "agentcore.json", VALID_DOC)

    assert cli_main.main(["validate", path]) == 0
    assert len(calls) == 1


def test_main_version(monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    assert cli_main.main(["--version"]) == 0
    assert "agentcore-config 0.1.0" in capsys.readouterr().out


def test_stack_output_requires_stack(monkeypatch):
    _no_dotenv(monkeypatch)
    monkeypatch.delenv("AGENTCORE_STACK_NAME", raising=False)
    assert cli_main.main(["stack-output"]) == 2


def test_stack_output_lists_outputs(monkeypatch):
    cf = _FakeCloudFormation([{"OutputKey": "VpcId", "OutputValue": "vpc-123"}])
    monkeypatch.setattr(cli_main, "_account_session", lambda: _FakeSession(cf))
    monkeypatch.setenv("AGENTCORE_STACK_NAME", "team")

    result = runner.invoke(cli_main.app, ["--plain-json", "stack-output"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"VpcId": "vpc-123"}
    assert cf.calls == [{"StackName": "team"}]


def test_stack_output_single_key(monkeypatch):
    cf = _FakeCloudFormation(
        [
            {"OutputKey": "VpcId", "OutputValue": "vpc-123"},
            {"OutputKey": "ExecutionRoleArn", "OutputValue": "arn:aws:iam::123456789012:role/team-execution-role"},
        ]
    )
    monkeypatch.setattr(cli_main, "_account_session", lambda: _FakeSession(cf))

    result = runner.invoke(cli_main.app, ["stack-output", "--stack", "team", "--key", "ExecutionRoleArn"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "arn:aws:iam::123456789012:role/team-execution-role\n"


def test_stack_output_missing_key(monkeypatch):
    _no_dotenv(monkeypatch)
    cf = _FakeCloudFormation([{"OutputKey": "VpcId", "OutputValue": "vpc-123"}])
    monkeypatch.setattr(cli_main, "_account_session", lambda: _FakeSession(cf))

    assert cli_main.main(["stack-output", "--stack", "team", "--key", "Nope"]) == 1


def test_account_session_requires_profile_and_region(monkeypatch):
    _no_dotenv(monkeypatch)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_REGION", raising=False)

    assert cli_main.main(["stack-output", "--stack", "team"]) == 2


def test_main_unwritable_target_directory_is_op_error(tmp_path, monkeypatch, capsys):
    _no_dotenv(monkeypatch)
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    rc = cli_main.main(["example", str(blocker / "nested" / "agentcore.yaml")])

    assert rc == 1
    assert "failed to write" in capsys.readouterr().err
