"""Provider selection from configuration."""

from typing import Optional

from src.config import ConfigurationInvalidError, ProviderConfig, ProviderType
from src.downloader import FileFetcher

from .gmail_provider import GmailProvider
from .imap_provider import ImapProvider
from .provider import MessageProvider


def create_provider(
    config: ProviderConfig, file_fetcher: Optional[FileFetcher] = None
) -> MessageProvider:
    """Build the MessageProvider matching ``config.provider``."""
    if config.provider is ProviderType.GMAIL:
        return GmailProvider(config, file_fetcher=file_fetcher)
    if config.provider is ProviderType.IMAP:
        return ImapProvider(config, file_fetcher=file_fetcher)
    raise ConfigurationInvalidError(f"Unsupported email provider: {config.provider!r}")
