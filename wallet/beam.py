"""
BEAM Coin Ledger API client.

Talks to the external ledger that owns BEAM Coin balances and transaction
history. All calls accept an optional bearer token; without one the request
is sent anonymously.
"""
import logging
from typing import Any, Optional

import httpx

from .errors import LedgerUnavailableError
from .models import BeamBalance, BeamTransactionType

logger = logging.getLogger(__name__)


class BeamLedgerClient:
    def __init__(
        self,
        base_url: str,
        admin_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.admin_url = (admin_url or base_url).rstrip("/")
        self.token = token
        self._http = httpx.Client(timeout=timeout, transport=transport)

    def close(self):
        self._http.close()

    def _headers(self, id_token: Optional[str] = None) -> dict:
        headers = {"Content-Type": "application/json"}
        token = id_token or self.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _request(self, method: str, url: str, id_token: Optional[str] = None, **kwargs) -> Any:
        logger.debug("BEAM ledger %s %s", method, url)
        try:
            response = self._http.request(method, url, headers=self._headers(id_token), **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise LedgerUnavailableError(
                f"BEAM Ledger API error: {e.response.status_code} "
                f"{e.response.reason_phrase} - {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise LedgerUnavailableError(f"BEAM Ledger API unreachable: {e}") from e

        try:
            return response.json()
        except ValueError as e:
            raise LedgerUnavailableError(f"BEAM Ledger API returned invalid JSON from {url}") from e

    def get_balance(self, uid: str, id_token: Optional[str] = None) -> BeamBalance:
        data = self._request("GET", f"{self.base_url}/api/balance", id_token, params={"uid": uid})
        balance = data.get("balance") if isinstance(data, dict) else None
        return BeamBalance(uid=uid, balance=balance or 0)

    def add_transaction(
        self,
        uid: str,
        type: BeamTransactionType,
        amount: float,
        description: str,
        id_token: Optional[str] = None,
    ) -> Any:
        payload = {
            "uid": uid,
            "type": BeamTransactionType(type).value,
            "amount": amount,
            "description": description,
        }
        return self._request("POST", f"{self.base_url}/api/transactions", id_token, json=payload)

    def get_transactions(self, uid: str, id_token: Optional[str] = None) -> list:
        data = self._request("GET", f"{self.base_url}/api/transactions", id_token, params={"uid": uid})
        return data if isinstance(data, list) else []

    # Admin endpoints

    def get_admin_clients(self, id_token: Optional[str] = None) -> list:
        data = self._request("GET", f"{self.admin_url}/api/admin/clients", id_token)
        return data if isinstance(data, list) else []

    def get_admin_transactions(self, limit: int = 100, id_token: Optional[str] = None) -> list:
        data = self._request(
            "GET", f"{self.admin_url}/api/admin/transactions", id_token, params={"limit": limit}
        )
        return data if isinstance(data, list) else []

    def get_admin_stats(self, id_token: Optional[str] = None) -> dict:
        data = self._request("GET", f"{self.admin_url}/api/admin/stats", id_token)
        return data if isinstance(data, dict) else {}
