"""Unit tests for Gmail authentication."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest

from src.mail import (
    CredentialsInvalidError,
    CredentialsMissingError,
    GmailAuthenticator,
    NonInteractiveAuthError,
    ScopeMismatchError,
)
from src.mail.gmail_auth import DEFAULT_SCOPES, validate_client_config

CLIENT_CONFIG = {
    "installed": {
        "client_id": "client-id.apps.googleusercontent.com",
        "client_secret": "secret",
        "redirect_uris": ["http://localhost"],
    }
}


@pytest.fixture
def credentials_file(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps(CLIENT_CONFIG))
    return path


@pytest.fixture(autouse=True)
def _clean_env():
    with patch.dict(os.environ, {}, clear=True):
        yield


class TestValidateClientConfig:
    def test_installed_section(self):
        assert validate_client_config(CLIENT_CONFIG) == CLIENT_CONFIG["installed"]

    def test_web_section(self):
        config = {"web": CLIENT_CONFIG["installed"]}
        assert validate_client_config(config) == CLIENT_CONFIG["installed"]

    def test_missing_section(self):
        with pytest.raises(CredentialsInvalidError):
            validate_client_config({"other": {}})

    def test_missing_fields(self):
        config = {"installed": {"client_id": "id"}}
        with pytest.raises(CredentialsInvalidError) as exc_info:
            validate_client_config(config)
        assert exc_info.value.missing_fields == ["client_secret", "redirect_uris"]
        assert "Invalid or incomplete credentials.json file" in str(exc_info.value)


class TestLoadClientConfig:
    def test_reads_file(self, credentials_file, tmp_path):
        auth = GmailAuthenticator(credentials_path=credentials_file, token_path=tmp_path / "t.json")
        assert auth.load_client_config() == CLIENT_CONFIG

    def test_falls_back_to_secret_env(self, tmp_path):
        auth = GmailAuthenticator(
            credentials_path=tmp_path / "absent.json", token_path=tmp_path / "t.json"
        )
        with patch.dict(os.environ, {"GMAIL_CREDENTIALS_JSON": json.dumps(CLIENT_CONFIG)}):
            assert auth.load_client_config() == CLIENT_CONFIG

    def test_missing_everywhere(self, tmp_path):
        auth = GmailAuthenticator(
            credentials_path=tmp_path / "absent.json", token_path=tmp_path / "t.json"
        )
        with pytest.raises(CredentialsMissingError, match="credentials.json file not found"):
            auth.load_client_config()

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "credentials.json"
        path.write_text("{not json")
        auth = GmailAuthenticator(credentials_path=path, token_path=tmp_path / "t.json")

        with pytest.raises(CredentialsInvalidError):
            auth.load_client_config()


class TestGetService:
    @patch("src.mail.gmail_auth.build")
    @patch("src.mail.gmail_auth.Credentials")
    def test_valid_cached_token(self, mock_credentials, mock_build, credentials_file, tmp_path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        creds = MagicMock(valid=True, granted_scopes=DEFAULT_SCOPES)
        mock_credentials.from_authorized_user_file.return_value = creds

        auth = GmailAuthenticator(credentials_path=credentials_file, token_path=token_path)
        service = auth.get_service()

        assert service is mock_build.return_value
        mock_build.assert_called_once_with("gmail", "v1", credentials=creds)
        assert auth.credentials is creds
        # Service is cached
        assert auth.get_service() is service
        assert mock_build.call_count == 1

    @patch("src.mail.gmail_auth.build")
    @patch("src.mail.gmail_auth.Request")
    @patch("src.mail.gmail_auth.Credentials")
    def test_refresh_token_in_client_document(
        self, mock_credentials, mock_request, mock_build, tmp_path
    ):
        config = {"installed": dict(CLIENT_CONFIG["installed"], refresh_token="refresh-1")}
        path = tmp_path / "credentials.json"
        path.write_text(json.dumps(config))
        token_path = tmp_path / "cache" / "token.json"

        creds = MagicMock(valid=False, refresh_token="refresh-1", token=None)
        creds.to_json.return_value = '{"token": "abc"}'
        mock_credentials.return_value = creds

        auth = GmailAuthenticator(credentials_path=path, token_path=token_path, interactive=False)
        auth.get_service()

        _, kwargs = mock_credentials.call_args
        assert kwargs["refresh_token"] == "refresh-1"
        assert kwargs["client_id"] == "client-id.apps.googleusercontent.com"
        creds.refresh.assert_called_once_with(mock_request.return_value)
        assert token_path.read_text() == '{"token": "abc"}'

    @patch("src.mail.gmail_auth.build")
    @patch("src.mail.gmail_auth.InstalledAppFlow")
    def test_interactive_flow_when_no_token(self, mock_flow, mock_build, credentials_file, tmp_path):
        token_path = tmp_path / "token.json"
        creds = MagicMock()
        creds.to_json.return_value = "{}"
        mock_flow.from_client_config.return_value.run_local_server.return_value = creds

        auth = GmailAuthenticator(credentials_path=credentials_file, token_path=token_path)
        auth.get_service()

        mock_flow.from_client_config.assert_called_once_with(CLIENT_CONFIG, DEFAULT_SCOPES)
        assert token_path.exists()

    def test_non_interactive_without_token(self, credentials_file, tmp_path):
        auth = GmailAuthenticator(
            credentials_path=credentials_file, token_path=tmp_path / "token.json", interactive=False
        )
        with pytest.raises(NonInteractiveAuthError, match="No valid token exists"):
            auth.get_service()

    def test_non_interactive_env_var(self, credentials_file, tmp_path):
        with patch.dict(os.environ, {"GMAIL_NON_INTERACTIVE": "1"}):
            auth = GmailAuthenticator(
                credentials_path=credentials_file, token_path=tmp_path / "token.json"
            )
        with pytest.raises(NonInteractiveAuthError):
            auth.get_service()

    @patch("src.mail.gmail_auth.Credentials")
    def test_scope_mismatch_non_interactive(self, mock_credentials, credentials_file, tmp_path):
        token_path = tmp_path / "token.json"
        token_path.write_text("{}")
        mock_credentials.from_authorized_user_file.return_value = MagicMock(
            granted_scopes=["https://www.googleapis.com/auth/userinfo.email"],
            scopes=["https://www.googleapis.com/auth/userinfo.email"],
        )

        auth = GmailAuthenticator(
            credentials_path=credentials_file, token_path=token_path, interactive=False
        )
        with pytest.raises(ScopeMismatchError):
            auth.get_service()
