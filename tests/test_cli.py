"""Tests for the drive-bridge CLI."""

import os
from unittest.mock import patch

import pytest

from drive_bridge.cli import main
from drive_bridge.store import CredentialStore


@pytest.fixture
def env(tmp_path):
    options = tmp_path / "data" / "options.json"
    values = {
        "DRIVE_BRIDGE_BASE_URL": "https://app.example.com",
        "DRIVE_BRIDGE_OPTIONS_FILE": str(options),
    }
    with patch.dict(os.environ, values, clear=True):
        yield options


class TestCli:
    """Command dispatch and exit codes."""

    def test_no_command(self, env, capsys):
        """Should print help and exit 0."""
        assert main([]) == 0
        assert "drive-bridge" in capsys.readouterr().out

    def test_credentials_saved(self, env, capsys):
        """Should store credentials and print the redirect URI."""
        assert main(["credentials", "cli-id", "cli-secret"]) == 0

        assert CredentialStore(env).get_credentials().client_id == "cli-id"
        assert "https://app.example.com/drive/callback" in capsys.readouterr().out

    def test_credentials_rejected(self, env, capsys):
        """Should exit 1 for blank credentials."""
        assert main(["credentials", "cli-id", " "]) == 1
        assert "required" in capsys.readouterr().out

    def test_status_without_token(self, env, capsys):
        """Should exit 1 when no token is stored."""
        assert main(["status"]) == 1
        assert "auth-url" in capsys.readouterr().out

    def test_auth_url_requires_credentials(self, env, capsys):
        """Should exit 1 before credentials are saved."""
        assert main(["auth-url", "--no-browser"]) == 1

    def test_auth_url(self, env, capsys):
        """Should print the consent URL without opening a browser."""
        main(["credentials", "cli-id", "cli-secret"])

        with patch("drive_bridge.cli.webbrowser.open") as open_browser:
            assert main(["auth-url", "--no-browser"]) == 0

        open_browser.assert_not_called()
        assert "accounts.google.com" in capsys.readouterr().out

    def test_refresh_without_token(self, env, capsys):
        """Should exit 1 when there is nothing to refresh."""
        assert main(["refresh"]) == 1
