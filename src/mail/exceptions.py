"""Exceptions for the mail provider module."""


class MailProviderError(Exception):
    """Base exception for mail provider failures raised by this package."""

    pass


class NotConnectedError(MailProviderError):
    """Raised when a provider is used before connect() succeeded."""

    def __init__(self, provider_name: str):
        self.provider_name = provider_name
        super().__init__(
            f"{provider_name} provider is not connected. Call connect() first."
        )


class AuthenticationError(MailProviderError):
    """Raised when Gmail authentication fails."""

    pass


class CredentialsMissingError(AuthenticationError):
    """Raised when no OAuth client document can be found."""

    def __init__(self, credentials_path: str, secret_env_var: str):
        self.credentials_path = credentials_path
        self.secret_env_var = secret_env_var
        super().__init__(
            f"credentials.json file not found at {credentials_path} and "
            f"{secret_env_var} is not set. Please download OAuth credentials "
            "from Google Cloud Console or mount them as a secret."
        )


class CredentialsInvalidError(AuthenticationError):
    """Raised when the OAuth client document lacks required fields."""

    def __init__(self, missing_fields: list[str]):
        self.missing_fields = missing_fields
        super().__init__(
            "Invalid or incomplete credentials.json file. Ensure client_id, "
            f"client_secret, and redirect_uris are present. Missing: {missing_fields}"
        )


class ScopeMismatchError(AuthenticationError):
    """Raised when token scopes don't match required scopes.

    This typically happens when the code requests different scopes
    than what the existing token was authorized for.
    """

    def __init__(self, required_scopes: list[str], token_scopes: list[str]):
        self.required_scopes = required_scopes
        self.token_scopes = token_scopes
        missing = set(required_scopes) - set(token_scopes)
        super().__init__(
            f"Token scopes mismatch. Missing scopes: {missing}. "
            f"Required: {required_scopes}, Token has: {token_scopes}. "
            "Delete the token file and re-authenticate with correct scopes."
        )


class NonInteractiveAuthError(AuthenticationError):
    """Raised when authentication requires user interaction but running in non-interactive mode."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(
            f"Authentication requires user interaction but GMAIL_NON_INTERACTIVE=1 is set. "
            f"Reason: {reason}. "
            "Either run locally to re-authenticate, or update the stored token."
        )
