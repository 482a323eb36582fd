"""Tests for the command line interface."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from flowreplay.adapters.document import DocumentContext
from flowreplay.cli import build_parser, main, parse_variables
from flowreplay.flows.transport import FlowUploadError

LOGIN_URL = "https://example.com/login"


@pytest.fixture
def write_flow(tmp_path):
    """Write a flow document and return its path."""
    def _write(*steps: dict, title: str = "Sign in") -> str:
        path = tmp_path / "flow.json"
        path.write_text(json.dumps({
            "id": "flow-1",
            "title": title,
            "createdAt": 1735689600000,
            "steps": list(steps),
        }), encoding="utf-8")
        return str(path)
    return _write


class TestParseVariables:
    """Tests for --var parsing."""

    def test_pairs(self):
        assert parse_variables(["user=ada", "query=a=b", "empty="]) == {
            "user": "ada",
            "query": "a=b",
            "empty": "",
        }

    @pytest.mark.parametrize("pair", ["novalue", "=x"])
    def test_invalid(self, pair):
        with pytest.raises(ValueError):
            parse_variables([pair])


class TestParser:
    """Tests for argument parsing."""

    def test_run_defaults(self):
        args = build_parser().parse_args(["run", "flow.json"])

        assert args.backend == "playwright"
        assert args.var == []
        assert not args.continue_on_error
        assert args.step_delay_ms is None

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_backend_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "flow.json", "--backend", "document"])


class TestValidateCommand:
    """Tests for `flowreplay validate`."""

    def test_valid_flow(self, write_flow, capsys):
        path = write_flow({"type": "navigate", "url": LOGIN_URL}, {"type": "screenshot"})

        assert main(["validate", path]) == 0
        assert "Sign in: 2 steps, no problems" in capsys.readouterr().out

    def test_invalid_flow(self, write_flow, capsys):
        path = write_flow({"type": "navigate", "url": LOGIN_URL}, {"type": "click"})

        assert main(["validate", path]) == 1
        assert "step 1 (click): click step requires a locator" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "missing.json")]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_malformed_document(self, tmp_path, capsys):
        path = tmp_path / "flow.json"
        path.write_text("{not json", encoding="utf-8")

        assert main(["validate", str(path)]) == 1
        assert "Error:" in capsys.readouterr().err


class TestRunCommand:
    """Tests for `flowreplay run` against a document context."""

    @pytest.mark.parametrize("extra", [[], ["--racing"]])
    def test_successful_run(self, write_flow, login_html, capsys, extra):
        path = write_flow({"type": "extract", "locator": {"primary": "#title"}})
        context = DocumentContext(login_html, url=LOGIN_URL)

        with patch("flowreplay.cli.create_context", return_value=context):
            code = main(["run", path, *extra])

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["success"] is True
        assert output["extractedData"] == {"0": "Welcome back"}

    def test_failed_run(self, write_flow, login_html, capsys):
        path = write_flow({"type": "click", "locator": {"primary": "#missing"}, "timeoutMs": 100})

        with patch("flowreplay.cli.create_context", return_value=DocumentContext(login_html, url=LOGIN_URL)):
            code = main(["run", path])

        assert code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["errorCode"] == "ELEMENT_NOT_FOUND"
        assert output["failedStepIndex"] == 0

    def test_variables_and_backend_passed(self, write_flow, login_html, capsys):
        path = write_flow({"type": "type", "locator": {"primary": "#email"}, "text": "{{user}}"})
        context = DocumentContext(login_html, url=LOGIN_URL)

        with patch("flowreplay.cli.create_context", return_value=context) as create:
            code = main(["run", path, "--backend", "webdriver", "--var", "user=ada", "--headed"])

        assert code == 0
        backend, config = create.call_args.args
        assert backend.value == "webdriver"
        assert config.headless is False
        assert context.soup.select_one("#email")["value"] == "ada"

    def test_bad_variable(self, write_flow, capsys):
        path = write_flow({"type": "screenshot"})

        assert main(["run", path, "--var", "novalue"]) == 1
        assert "Expected name=value" in capsys.readouterr().err


class TestSendCommand:
    """Tests for `flowreplay send`."""

    def test_send(self, write_flow, capsys):
        path = write_flow({"type": "screenshot"})

        with patch("flowreplay.cli.FlowUploader") as uploader_cls:
            uploader_cls.return_value.send = AsyncMock(return_value={"id": "srv-1"})
            code = main(["send", path, "--endpoint", "https://backend.example.com/flows"])

        assert code == 0
        uploader_cls.assert_called_once_with(endpoint="https://backend.example.com/flows")
        assert json.loads(capsys.readouterr().out) == {"id": "srv-1"}

    def test_send_failure(self, write_flow, capsys):
        path = write_flow({"type": "screenshot"})

        with patch("flowreplay.cli.FlowUploader") as uploader_cls:
            uploader_cls.return_value.send = AsyncMock(side_effect=FlowUploadError("rejected"))
            code = main(["send", path])

        assert code == 1
        assert "Error: rejected" in capsys.readouterr().err
