import pytest
from typer.testing import CliRunner

from bidmonitor.cli import runtime
from bidmonitor.cli.main import app


runner = CliRunner()

TARGET = "https://city.example.gov/procurement"


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    """Run every command from an empty project directory"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def offline_relay(monkeypatch, fake_client):
    """Route watch commands to an in-memory relay"""
    client = fake_client()
    monkeypatch.setattr(runtime, "build_client", lambda config, relay_url=None: client)
    return client


class TestRootCommands:
    """Integration tests for init, status and reset"""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "bidmonitor" in result.output

    def test_init_writes_config(self, workspace):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (workspace / "configs" / "app.yaml").exists()
        assert (workspace / "data" / "bidmonitor.db").exists()

    def test_init_keeps_existing_config(self, workspace):
        config_path = workspace / "configs" / "app.yaml"
        config_path.parent.mkdir()
        config_path.write_text("relay:\n  port: 4000\n", encoding="utf-8")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert config_path.read_text(encoding="utf-8") == "relay:\n  port: 4000\n"

    def test_invalid_config_exits(self, workspace):
        bad = workspace / "bad.yaml"
        bad.write_text("monitor:\n  interval_ms: -1\n", encoding="utf-8")

        result = runner.invoke(app, ["--config", str(bad), "status"])
        assert result.exit_code == 1

    def test_status(self):
        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Success rate" in result.output
        assert "100%" in result.output

    def test_reset(self, offline_relay):
        runner.invoke(app, ["watch", "check", TARGET])

        result = runner.invoke(app, ["reset", "--yes"])
        assert result.exit_code == 0
        assert "All data cleared" in result.output

        listing = runner.invoke(app, ["results", "list"])
        assert "No results yet" in listing.output


class TestWatchCommands:
    """Integration tests for test, check and start"""

    def test_connection_test(self, offline_relay):
        result = runner.invoke(app, ["watch", "test", TARGET])

        assert result.exit_code == 0
        assert "Successfully connected to city.example.gov" in result.output
        assert "Bid Notice #1" in result.output

        listing = runner.invoke(app, ["results", "list"])
        assert "No results yet" in listing.output

    def test_connection_test_without_matches(self, monkeypatch, fake_client):
        client = fake_client(["<html><body><a href='/about'>About [staff]</a></body></html>"])
        monkeypatch.setattr(runtime, "build_client", lambda config, relay_url=None: client)

        result = runner.invoke(app, ["watch", "test", TARGET])

        assert result.exit_code == 0
        assert "Test Connection Successful" in result.output
        assert "Status: 200 OK" in result.output

    def test_connection_test_failure(self, monkeypatch, fake_client, relay_down):
        client = fake_client([relay_down])
        monkeypatch.setattr(runtime, "build_client", lambda config, relay_url=None: client)

        result = runner.invoke(app, ["watch", "test", TARGET])

        assert result.exit_code == 1
        assert "Connection failed" in result.output

    def test_invalid_url(self, offline_relay):
        result = runner.invoke(app, ["watch", "test", "not-a-url"])

        assert result.exit_code == 1
        assert offline_relay.calls == []

    def test_check_saves_results(self, offline_relay):
        result = runner.invoke(app, ["watch", "check", TARGET])

        assert result.exit_code == 0
        assert "New opportunity found: Bid Notice #1" in result.output

        csv_out = runner.invoke(app, ["results", "list", "--format", "csv"])
        assert '"Title","URL","Source","Date","Description"' in csv_out.output
        assert "https://city.example.gov/a" in csv_out.output

    def test_check_with_unmatched_keyword(self, offline_relay):
        result = runner.invoke(app, ["watch", "check", TARGET, "-k", "dredging"])

        assert result.exit_code == 0
        assert "nothing new" in result.output

    def test_check_with_site_credentials(self, offline_relay):
        result = runner.invoke(app, ["watch", "check", TARGET, "-u", "buyer", "--password", "s3cret"])

        assert result.exit_code == 0
        assert offline_relay.sent_headers == [{"Authorization": "Basic YnV5ZXI6czNjcmV0"}]

    def test_check_failure_exits_nonzero(self, monkeypatch, fake_client, relay_down):
        client = fake_client([relay_down])
        monkeypatch.setattr(runtime, "build_client", lambda config, relay_url=None: client)

        result = runner.invoke(app, ["watch", "check", TARGET])
        assert result.exit_code == 1

    def test_start_single_check(self, offline_relay):
        result = runner.invoke(app, ["watch", "start", TARGET, "--interval", "0"])

        assert result.exit_code == 0
        assert "Monitoring started!" in result.output
        assert offline_relay.calls == [TARGET]

        sites = runner.invoke(app, ["sites", "list"])
        assert "city.example.gov" in sites.output


class TestSiteAndResultCommands:
    """Integration tests for saved websites and results"""

    def test_add_list_remove_site(self):
        added = runner.invoke(app, ["sites", "add", TARGET])
        assert added.exit_code == 0
        assert "Added city.example.gov" in added.output

        duplicate = runner.invoke(app, ["sites", "add", TARGET])
        assert "already in your list" in duplicate.output

        missing = runner.invoke(app, ["sites", "remove", "website-missing", "--yes"])
        assert missing.exit_code == 1

    def test_add_invalid_site(self):
        result = runner.invoke(app, ["sites", "add", "ftp://example.gov"])
        assert result.exit_code == 1

    def test_export(self, offline_relay, workspace):
        empty = runner.invoke(app, ["results", "export"])
        assert "Nothing to export" in empty.output

        runner.invoke(app, ["watch", "check", TARGET])
        result = runner.invoke(app, ["results", "export", "--output", "exports/bids.csv"])

        assert result.exit_code == 0
        lines = (workspace / "exports" / "bids.csv").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3

    def test_export_to_new_directory(self, offline_relay, workspace):
        runner.invoke(app, ["watch", "check", TARGET])
        result = runner.invoke(app, ["results", "export", "-o", "exports/"])

        assert result.exit_code == 0
        written = list((workspace / "exports").glob("bidmonitor-results-*.csv"))
        assert len(written) == 1

    def test_json_listing(self, offline_relay):
        runner.invoke(app, ["watch", "check", TARGET])
        result = runner.invoke(app, ["results", "list", "--format", "json"])

        assert result.exit_code == 0
        assert '"title": "Tender Alert"' in result.output

    def test_copy_and_clear(self, offline_relay):
        runner.invoke(app, ["watch", "check", TARGET])

        copied = runner.invoke(app, ["results", "copy"])
        assert "Tender Alert\nhttps://tenders.example.gov/b\n" in copied.output

        cleared = runner.invoke(app, ["results", "clear", "--yes"])
        assert cleared.exit_code == 0
        listing = runner.invoke(app, ["results", "list"])
        assert "No results yet" in listing.output
