import pytest
from click.testing import CliRunner

from conftest import write
from forge import __version__
from forge import cli as cli_module
from forge.cli import cli


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli_module, "configure_logging", lambda **kwargs: None)


def test_no_command_prints_usage_and_fails():
    result = CliRunner().invoke(cli, [])
    assert result.exit_code == 1
    assert "Usage" in result.output


def test_unknown_command_fails():
    assert CliRunner().invoke(cli, ["deploy"]).exit_code != 0


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_build(project, monkeypatch):
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 0, result.output
    assert "Built 2 pages (0 errors)" in result.output
    assert "/blog/hello" in result.output
    assert (project / "dist" / "blog" / "hello" / "index.html").exists()


def test_build_to_custom_output(project, monkeypatch):
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build", "--output", "public"])
    assert result.exit_code == 0, result.output
    assert (project / "public" / "index.html").exists()


def test_build_without_manifest_fails(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed" in result.output
    assert "forge.yaml" in result.output


def test_build_with_page_error_exits_nonzero(project, monkeypatch):
    write(project / "templates" / "blog.html", "{% if %}")
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Built 1 pages (1 errors)" in result.output


def test_serve_without_build_fails(project, monkeypatch):
    monkeypatch.chdir(project)
    result = CliRunner().invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "Preview failed" in result.output


def test_serve_reports_stats(project, monkeypatch):
    monkeypatch.chdir(project)
    assert CliRunner().invoke(cli, ["build"]).exit_code == 0
    served = []
    monkeypatch.setattr(
        "forge.server.PreviewServer.serve_forever", lambda self: served.append(self.port)
    )
    result = CliRunner().invoke(cli, ["serve", "--port", "9123"])
    assert result.exit_code == 0, result.output
    assert "http://localhost:9123" in result.output
    assert served == [9123]
