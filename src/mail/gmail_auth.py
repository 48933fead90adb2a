"""Gmail API authentication helper."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from .exceptions import (
    CredentialsInvalidError,
    CredentialsMissingError,
    NonInteractiveAuthError,
    ScopeMismatchError,
)

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
]

# Env var holding the client document when it is mounted from a secret store
CREDENTIALS_SECRET_ENV = "GMAIL_CREDENTIALS_JSON"

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

_REQUIRED_CLIENT_FIELDS = ("client_id", "client_secret", "redirect_uris")


def validate_client_config(client_config: dict[str, Any]) -> dict[str, Any]:
    """Return the ``installed`` or ``web`` section of an OAuth client document.

    Raises:
        CredentialsInvalidError: If neither section exists or a required
            field is empty
    """
    section = client_config.get("installed") or client_config.get("web")
    if not isinstance(section, dict):
        raise CredentialsInvalidError(["installed", "web"])

    missing = [name for name in _REQUIRED_CLIENT_FIELDS if not section.get(name)]
    if missing:
        raise CredentialsInvalidError(missing)
    return section


class GmailAuthenticator:
    """Handles Gmail API authentication with token refresh.

    The OAuth client document comes from a local file in development
    or from the GMAIL_CREDENTIALS_JSON secret when deployed. The
    resulting token is cached on disk and reused across runs.
    """

    def __init__(
        self,
        credentials_path: Optional[Path] = None,
        token_path: Optional[Path] = None,
        scopes: Optional[list[str]] = None,
        interactive: bool = True,
    ):
        """Initialize the authenticator.

        Args:
            credentials_path: Path to OAuth credentials JSON file.
                Defaults to GMAIL_CREDENTIALS_PATH env var, or config/credentials.json.
            token_path: Path to store/load access token.
                Defaults to GMAIL_TOKEN_PATH env var, or config/token.json.
            scopes: List of Gmail API scopes to request.
                Defaults to read-only access.
            interactive: If False, raise an error instead of opening browser for OAuth.
                Also checks GMAIL_NON_INTERACTIVE env var. Defaults to True.
        """
        project_root = Path(__file__).parent.parent.parent

        if credentials_path:
            self._credentials_path = credentials_path
        elif os.environ.get("GMAIL_CREDENTIALS_PATH"):
            self._credentials_path = Path(os.environ["GMAIL_CREDENTIALS_PATH"])
        else:
            self._credentials_path = project_root / "config" / "credentials.json"

        if token_path:
            self._token_path = token_path
        elif os.environ.get("GMAIL_TOKEN_PATH"):
            self._token_path = Path(os.environ["GMAIL_TOKEN_PATH"])
        else:
            self._token_path = project_root / "config" / "token.json"

        self._scopes = scopes or DEFAULT_SCOPES
        self._service: Optional[Resource] = None
        self._credentials: Optional[Credentials] = None

        # Non-interactive mode: check both parameter and env var
        self._interactive = interactive and not os.environ.get("GMAIL_NON_INTERACTIVE")

    def load_client_config(self) -> dict[str, Any]:
        """Load and validate the OAuth client document.

        The local file wins; the secret-backed env var is the fallback.

        Raises:
            CredentialsMissingError: If neither source exists
            CredentialsInvalidError: If the document is malformed
        """
        if self._credentials_path.exists():
            logger.debug("Reading Gmail client configuration from %s", self._credentials_path)
            raw = self._credentials_path.read_text(encoding="utf-8")
        elif os.environ.get(CREDENTIALS_SECRET_ENV):
            logger.debug("Reading Gmail client configuration from %s", CREDENTIALS_SECRET_ENV)
            raw = os.environ[CREDENTIALS_SECRET_ENV]
        else:
            raise CredentialsMissingError(str(self._credentials_path), CREDENTIALS_SECRET_ENV)

        try:
            client_config = json.loads(raw)
        except json.JSONDecodeError:
            raise CredentialsInvalidError(["<valid JSON document>"]) from None
        if not isinstance(client_config, dict):
            raise CredentialsInvalidError(["installed", "web"])

        validate_client_config(client_config)
        return client_config

    def _validate_token_scopes(self, creds: Credentials) -> bool:
        """Check if token has all required scopes.

        Uses granted_scopes (the scopes actually stored in the token file)
        rather than scopes (the requested scopes passed at load time).
        """
        granted = creds.granted_scopes or creds.scopes
        if not granted:
            return False
        return all(scope in granted for scope in self._scopes)

    def _credentials_from_refresh_token(self, section: dict[str, Any]) -> Optional[Credentials]:
        """Build credentials from a refresh token embedded in the client document.

        Headless deployments store the refresh token next to the client
        id and secret instead of shipping a token file.
        """
        refresh_token = section.get("refresh_token")
        if not refresh_token:
            return None
        return Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=section.get("token_uri", GOOGLE_TOKEN_URI),
            client_id=section["client_id"],
            client_secret=section["client_secret"],
            scopes=self._scopes,
        )

    def _load_or_refresh_credentials(self) -> Credentials:
        """Load existing credentials or create new ones.

        Returns:
            Valid credentials object

        Raises:
            CredentialsMissingError: If no client document is available
            CredentialsInvalidError: If the client document is incomplete
            ScopeMismatchError: If token scopes don't match and non-interactive
            NonInteractiveAuthError: If re-auth needed but in non-interactive mode
        """
        client_config = self.load_client_config()
        creds = None

        if self._token_path.exists():
            creds = Credentials.from_authorized_user_file(
                str(self._token_path), self._scopes
            )

            if creds and not self._validate_token_scopes(creds):
                if not self._interactive:
                    raise ScopeMismatchError(
                        required_scopes=self._scopes,
                        token_scopes=list(creds.scopes) if creds.scopes else [],
                    )
                # In interactive mode, delete token and re-auth
                self._token_path.unlink()
                creds = None

        if not creds:
            section = client_config.get("installed") or client_config.get("web")
            creds = self._credentials_from_refresh_token(section)

        if not creds or not creds.valid:
            if creds and creds.refresh_token and (creds.expired or not creds.token):
                creds.refresh(Request())
            else:
                if not self._interactive:
                    reason = "No valid token exists" if not creds else "Token expired without refresh token"
                    raise NonInteractiveAuthError(reason)

                flow = InstalledAppFlow.from_client_config(client_config, self._scopes)
                creds = flow.run_local_server(port=0)

            # Save token for future runs
            self._token_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._token_path, "w") as token_file:
                token_file.write(creds.to_json())
            logger.info("Cached Gmail token at %s", self._token_path)

        return creds

    def get_service(self) -> Resource:
        """Get or create Gmail API service.

        Creates the service lazily on first call and caches it.
        """
        if self._service is None:
            self._credentials = self._load_or_refresh_credentials()
            self._service = build("gmail", "v1", credentials=self._credentials)
        return self._service

    @property
    def credentials(self) -> Optional[Credentials]:
        """Access the current credentials (after service creation)."""
        return self._credentials
