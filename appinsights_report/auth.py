"""Bearer tokens for the Azure Monitor Logs and Resource Manager APIs."""

import asyncio
import logging

from azure.core.credentials import TokenCredential
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from appinsights_report.errors import AuthenticationError

logger = logging.getLogger(__name__)

LOGS_SCOPE = "https://api.loganalytics.io/.default"
MANAGEMENT_SCOPE = "https://management.azure.com/.default"


class AzureTokenProvider:
    """Hands out access tokens from an azure-identity credential.

    The credential caches tokens itself, so calling ``get_token`` once per
    request is cheap. Defaults to ``DefaultAzureCredential`` (environment,
    managed identity, Azure CLI login, ...).
    """

    def __init__(self, credential: TokenCredential | None = None) -> None:
        self._credential = credential

    def _get_credential(self) -> TokenCredential:
        if self._credential is None:
            self._credential = DefaultAzureCredential()
        return self._credential

    async def get_token(self, scope: str) -> str:
        """Return a bearer token for ``scope``.

        Raises:
            AuthenticationError: No credential in the chain could issue a token.
        """
        credential = self._get_credential()
        try:
            access = await asyncio.to_thread(credential.get_token, scope)
        except ClientAuthenticationError as e:
            raise AuthenticationError(f"Azure authentication failed for {scope}: {e.message}") from e
        logger.debug("Acquired token for %s", scope)
        return access.token
