"""
Microsoft Graph API authentication using MSAL (Device Code Flow).
"""

import logging
from pathlib import Path

import msal
from rich.console import Console

from ..domain.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

console = Console()


class GraphAuthenticator:
    """
    Connects an expert's Microsoft calendar using Device Code Flow.

    The token is cached on disk so later runs can read free/busy data
    without prompting again.
    """

    # Free/busy on the signed-in calendar and calendars shared with it
    SCOPES = ["Calendars.Read.Shared", "Calendars.Read"]

    def __init__(
        self,
        client_id: str,
        tenant_id: str,
        authority_url: str | None = None,
        cache_file: Path | None = None
    ):
        """
        Initialize the authenticator.

        Args:
            client_id: Azure AD application (client) ID
            tenant_id: Azure AD tenant ID
            authority_url: Optional custom authority URL
            cache_file: Optional path to token cache file
        """
        if not client_id or not tenant_id:
            raise AuthenticationError("client_id and tenant_id must be configured to use Microsoft Graph")

        self.client_id = client_id
        self.tenant_id = tenant_id
        self.authority = authority_url or f"https://login.microsoftonline.com/{tenant_id}"
        self.cache_file = cache_file or Path.home() / ".eleva_availability_token_cache.json"
        self.cache = self._load_cache()

        self.app = msal.PublicClientApplication(
            client_id=self.client_id,
            authority=self.authority,
            token_cache=self.cache
        )

    def _load_cache(self) -> msal.SerializableTokenCache:
        """Load token cache from disk if it exists."""
        cache = msal.SerializableTokenCache()

        if self.cache_file.exists():
            try:
                cache.deserialize(self.cache_file.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Could not load token cache: %s", exc)

        return cache

    def _save_cache(self) -> None:
        """Save token cache to disk."""
        if not self.cache.has_state_changed:
            return

        try:
            self.cache_file.write_text(self.cache.serialize(), encoding="utf-8")
            # Owner only
            self.cache_file.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save token cache: %s", exc)

    def get_access_token(self, force_refresh: bool = False) -> str:
        """
        Get a valid access token, using cache or requesting new one.

        Args:
            force_refresh: Force authentication even if cached token exists

        Returns:
            Access token string

        Raises:
            AuthenticationError: If authentication fails
        """
        token = None if force_refresh else self._silent_token()
        return token or self._authenticate_device_code_flow()

    def _silent_token(self) -> str | None:
        """A cached or refreshed token for the first known account, if any."""
        for account in self.app.get_accounts()[:1]:
            result = self.app.acquire_token_silent(scopes=self.SCOPES, account=account)
            if result and "access_token" in result:
                self._save_cache()
                return result["access_token"]

            logger.debug("Silent token refresh failed for %s", account.get("username"))

        return None

    def _authenticate_device_code_flow(self) -> str:
        flow = self.app.initiate_device_flow(scopes=self.SCOPES)

        if "user_code" not in flow:
            raise AuthenticationError(
                f"Failed to initiate device flow: {flow.get('error_description', 'Unknown error')}"
            )

        console.print("\n[bold cyan]Microsoft calendar sign-in required[/bold cyan]")
        console.print(f"1. Open [bold cyan]{flow['verification_uri']}[/bold cyan]")
        console.print(f"2. Enter the code [bold yellow]{flow['user_code']}[/bold yellow]")
        console.print("3. Sign in with the expert's Microsoft account and grant calendar access\n")
        console.print("[dim]Waiting for authentication...[/dim]\n")

        result = self.app.acquire_token_by_device_flow(flow)

        if "access_token" not in result:
            error = result.get("error_description", "Unknown error")
            raise AuthenticationError(f"Authentication failed: {error}")

        logger.info("Microsoft Graph authentication succeeded")
        self._save_cache()

        return result["access_token"]

    def clear_cache(self) -> None:
        """Clear the token cache (force re-authentication next time)."""
        if self.cache_file.exists():
            self.cache_file.unlink()
        self.cache = msal.SerializableTokenCache()
