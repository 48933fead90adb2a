"""Mail provider module for discovering workout emails.

This module provides the MessageProvider capability and its Gmail and
IMAP implementations, plus parsing helpers and supporting models.

Public API:
    - MessageProvider: Interface implemented by every backend
    - GmailProvider: Gmail API backend
    - ImapProvider: Generic IMAP backend
    - create_provider: Pick a backend from ProviderConfig
    - WorkoutEmail, Attachment, MessageFilter: Data models
    - GmailAuthenticator: Authentication helper
    - StateRepository / InMemoryStateRepository: Processed-message ledger
    - MailProviderError and subclasses
"""

from .exceptions import (
    AuthenticationError,
    CredentialsInvalidError,
    CredentialsMissingError,
    MailProviderError,
    NonInteractiveAuthError,
    NotConnectedError,
    ScopeMismatchError,
)
from .factory import create_provider
from .gmail_auth import GmailAuthenticator
from .gmail_provider import GmailProvider
from .imap_provider import ImapProvider
from .models import Attachment, MessageFilter, WorkoutEmail
from .provider import MessageProvider
from .state import InMemoryStateRepository, StateRepository

__all__ = [
    "MessageProvider",
    "GmailProvider",
    "ImapProvider",
    "create_provider",
    "WorkoutEmail",
    "Attachment",
    "MessageFilter",
    "GmailAuthenticator",
    "StateRepository",
    "InMemoryStateRepository",
    "MailProviderError",
    "NotConnectedError",
    "AuthenticationError",
    "CredentialsMissingError",
    "CredentialsInvalidError",
    "ScopeMismatchError",
    "NonInteractiveAuthError",
]
