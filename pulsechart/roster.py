"""Artist roster: which artists to ingest and where to find them."""

import json
import logging
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RosterEntry(BaseModel):
    """One tracked artist.

    `handles` is keyed by provider id ("tiktok_free") or by platform
    ("tiktok"); a provider id key wins over its platform key.
    """

    id: str
    name: Optional[str] = None
    handles: dict[str, str] = Field(default_factory=dict)

    def handles_by_provider(self, provider_platforms: Mapping[str, str]) -> dict[str, str]:
        resolved: dict[str, str] = {}
        for provider_id, platform in provider_platforms.items():
            handle = self.handles.get(provider_id) or self.handles.get(platform)
            if handle:
                resolved[provider_id] = handle
        return resolved


class Roster(BaseModel):
    artists: list[RosterEntry] = Field(default_factory=list)

    def to_ingestion_map(
        self,
        provider_platforms: Mapping[str, str],
        only: Optional[str] = None,
    ) -> dict[str, dict[str, str]]:
        """artist id -> provider id -> handle, optionally for one artist."""
        return {
            entry.id: entry.handles_by_provider(provider_platforms)
            for entry in self.artists
            if only is None or entry.id == only
        }


def load_roster(path: Path) -> Roster:
    """Load and validate the roster file. A missing file is an empty roster."""
    path = Path(path)
    if not path.exists():
        logger.warning(f"Roster file {path} not found - nothing to ingest")
        return Roster()

    with open(path) as f:
        roster = Roster.model_validate(json.load(f))
    logger.info(f"Loaded roster of {len(roster.artists)} artist(s) from {path}")
    return roster
