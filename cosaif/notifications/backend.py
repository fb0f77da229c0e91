"""Best-effort calls to the Cosaif backend about incidents."""
from __future__ import annotations

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)

RESOLVE_PATH = "/incidentes/resolver"


class IncidentBackend:
    def __init__(
        self,
        base_url: str,
        timeout: float = 8.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def resolve_incident(self, incidente_id: str, token: str) -> bool:
        """Tell the backend an incident was handled.

        The response body is ignored.  Returns False on any failure; never
        raises and never retries.
        """
        url = f"{self.base_url}{RESOLVE_PATH}"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }
        try:
            resp = self.session.post(
                url,
                json={"incidenteId": incidente_id},
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Could not notify incident resolution to %s: %s", url, exc)
            return False
        if not resp.ok:
            logger.warning(
                "Backend answered %s to resolution of %s", resp.status_code, incidente_id,
            )
            return False
        logger.info("Backend notified: incident %s resolved", incidente_id)
        return True

    def close(self) -> None:
        self.session.close()
