"""REST client for the people endpoints of a site."""

import logging
from typing import Any

import httpx

from ..config import APIConfig
from .errors import RemoteFetchError, RemoteUpdateError
from .models import Person, Role

logger = logging.getLogger(__name__)

# User fields requested from the backend; anything else is ignored
TEAM_FIELDS = (
    "ID,nice_name,first_name,last_name,name,avatar_URL,roles,"
    "is_super_admin,linked_user_ID"
)


class PeopleRemote:
    """Client for the site users REST API.

    Every failure, transport or payload, is raised as RemoteFetchError or
    RemoteUpdateError. No retries are attempted.
    """

    def __init__(self, config: APIConfig):
        """Initialize the client.

        Args:
            config: API section of the teamsync configuration.
        """
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.config.token:
                headers["Authorization"] = f"Bearer {self.config.token}"

            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_team(self, site_id: int) -> list[Person]:
        """Fetch the full team of a site in one request.

        Args:
            site_id: Site to fetch.

        Returns:
            People in the order the backend returned them.

        Raises:
            RemoteFetchError: On transport errors, non-2xx responses or a
                payload without a "users" list.
        """
        params: dict[str, Any] = {
            "number": self.config.team_size,
            "fields": TEAM_FIELDS,
        }

        try:
            client = await self._get_client()
            response = await client.get(f"/sites/{site_id}/users", params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteFetchError(f"Error fetching team of site {site_id}: {e}") from e

        users = data.get("users") if isinstance(data, dict) else None
        if not isinstance(users, list):
            raise RemoteFetchError(f"Malformed team response for site {site_id}")

        try:
            people = [Person.from_remote(site_id, user) for user in users]
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteFetchError(f"Malformed user in team of site {site_id}: {e}") from e

        logger.debug(f"Fetched {len(people)} people for site {site_id}")
        return people

    async def update_person(self, site_id: int, person_id: int, role: Role) -> None:
        """Assign a new role to a person.

        Raises:
            RemoteUpdateError: If the backend rejects or never receives the
                change.
        """
        payload = {"roles": [role.value]}

        try:
            client = await self._get_client()
            response = await client.post(
                f"/sites/{site_id}/users/{person_id}", json=payload
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise RemoteUpdateError(
                f"Error updating person {person_id} in site {site_id}: {e}"
            ) from e

        logger.debug(f"Updated role of person {person_id} in site {site_id} to {role}")
