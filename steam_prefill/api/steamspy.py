"""
Async client for SteamSpy, used to find the most played games of the last two weeks.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp

from steam_prefill.exceptions import PopularGamesError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PopularGame:
    app_id: int
    name: str
    concurrent_users: int = 0


def parse_top_games(payload: Any) -> List[PopularGame]:
    """
    Converts a SteamSpy response, an object keyed by app id, into a list of games.

    The order of the response is preserved, since SteamSpy returns the most
    played games first.
    """
    if not isinstance(payload, dict):
        raise PopularGamesError(
            f"Unexpected SteamSpy response type: {type(payload).__name__}"
        )

    games = []
    for key, entry in payload.items():
        if not isinstance(entry, dict):
            continue
        try:
            app_id = int(entry.get("appid", key))
        except (TypeError, ValueError):
            log.debug(f"Skipping SteamSpy entry with invalid app id: {key!r}")
            continue
        games.append(
            PopularGame(
                app_id=app_id,
                name=str(entry.get("name") or f"App {app_id}"),
                concurrent_users=int(entry.get("ccu") or 0),
            )
        )
    return games


class SteamSpyClient:
    """Fetches popular game lists from the public SteamSpy API."""

    BASE_URL = "https://steamspy.com/api.php"

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept-Encoding": "gzip, deflate"},
                timeout=aiohttp.ClientTimeout(total=30, connect=10),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Closes the session, unless it was provided by the caller."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def fetch_top_games_last_two_weeks(self) -> List[PopularGame]:
        """Returns the top 100 games by players in the last two weeks."""
        session = await self._initialize_session()
        params: Dict[str, str] = {"request": "top100in2weeks"}
        try:
            async with session.get(self.BASE_URL, params=params) as response:
                response.raise_for_status()
                # SteamSpy doesn't always send a JSON content type
                payload = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise PopularGamesError(f"Failed to fetch popular games: {e}") from e

        games = parse_top_games(payload)
        log.debug(f"Retrieved {len(games)} popular games from SteamSpy.")
        return games

    async def top_app_ids(self, count: int) -> List[int]:
        """Returns the ids of the `count` most played games."""
        if count <= 0:
            return []
        games = await self.fetch_top_games_last_two_weeks()
        return [game.app_id for game in games[:count]]
