"""File-backed cache of the OpenRouter model catalog."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Literal, Optional

import httpx

from finn_bot.core.errors import ConfigurationError, ProviderError
from finn_bot.log import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_AGE = timedelta(hours=24)
DEFAULT_SEARCH_LIMIT = 5
MAX_SEARCH_LIMIT = 25

CatalogSource = Literal["cache", "refresh"]
SortMode = Literal["recent", "relevance"]


@dataclass
class CatalogSnapshot:
    fetched_at: str
    models: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"fetchedAt": self.fetched_at, "models": self.models}

    def fetched_datetime(self) -> datetime | None:
        try:
            parsed = datetime.fromisoformat(self.fetched_at)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def is_fresh(self, max_age: timedelta) -> bool:
        fetched = self.fetched_datetime()
        if fetched is None:
            return False
        return datetime.now(timezone.utc) - fetched < max_age


def _string_field(model: dict[str, Any], key: str) -> Optional[str]:
    value = model.get(key)
    return value if isinstance(value, str) else None


def _number_field(model: dict[str, Any], key: str) -> Optional[float]:
    value = model.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def model_created(model: dict[str, Any]) -> Optional[float]:
    """Creation timestamp as reported by the catalog, if any."""
    for key in ("created", "created_at", "updated"):
        value = _number_field(model, key)
        if value is not None:
            return value
    return None


def score_model(model: dict[str, Any], terms: list[str]) -> int:
    """Substring score: 2 per term longer than 3 chars, 1 otherwise, +3 on a prefix match."""
    if not terms:
        return 0
    haystack = " ".join(
        part for part in (
            _string_field(model, "id"),
            _string_field(model, "name"),
            _string_field(model, "description"),
        ) if part
    ).lower()

    score = 0
    for term in terms:
        if term in haystack:
            score += 2 if len(term) > 3 else 1
    if haystack.startswith(" ".join(terms)):
        score += 3
    return score


class ModelCatalog:
    """Local snapshot of the remote model catalog, refreshed when stale.

    No state is kept in memory between calls: the JSON file is the cache.
    Readers tolerate a corrupt or half-written file by treating it as a miss;
    writers replace the file atomically.
    """

    def __init__(
        self,
        path: str | Path,
        api_key: Optional[str],
        base_url: str = "https://openrouter.ai/api/v1",
        public_url: str = "https://example.com",
        app_title: str = "Finn Slack Bot",
        timeout: float = 60,
        max_age: timedelta = DEFAULT_MAX_AGE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._path = Path(path)
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": public_url,
            "X-Title": app_title,
        }
        self._timeout = timeout
        self._max_age = max_age
        self._transport = transport

    @property
    def path(self) -> Path:
        return self._path

    def read_cache(self) -> CatalogSnapshot | None:
        if not self._path.exists():
            return None
        try:
            parsed = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("catalog_cache_unreadable", path=str(self._path), error=str(e))
            return None
        if (
            not isinstance(parsed, dict)
            or not isinstance(parsed.get("models"), list)
            or not isinstance(parsed.get("fetchedAt"), str)
        ):
            logger.warning("catalog_cache_malformed", path=str(self._path))
            return None
        return CatalogSnapshot(fetched_at=parsed["fetchedAt"], models=parsed["models"])

    def write_cache(self, snapshot: CatalogSnapshot) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=".catalog-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f)
            os.replace(tmp_path, self._path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def refresh(self) -> CatalogSnapshot:
        """Fetch the catalog from the network and overwrite the cache file."""
        if not self._api_key:
            raise ConfigurationError("OpenRouter API key not configured")

        headers = {**self._headers, "Authorization": f"Bearer {self._api_key}"}
        url = f"{self._base_url}/models"
        logger.info("catalog_refresh", url=url)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError("OpenRouter", f"models request failed: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(
                "OpenRouter",
                f"models error: {response.status_code} {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderError("OpenRouter", "models response is not JSON") from e
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ProviderError("OpenRouter", "models response missing data array")

        snapshot = CatalogSnapshot(
            fetched_at=datetime.now(timezone.utc).isoformat(),
            models=data,
        )
        self.write_cache(snapshot)
        logger.info("catalog_refreshed", model_count=len(data))
        return snapshot

    async def get(
        self, refresh: bool = False, max_age: timedelta | None = None
    ) -> tuple[CatalogSnapshot, CatalogSource]:
        """Return the cached snapshot when fresh, otherwise refresh it."""
        max_age = self._max_age if max_age is None else max_age
        cached = self.read_cache()
        if not refresh and cached is not None and cached.is_fresh(max_age):
            return cached, "cache"
        return await self.refresh(), "refresh"

    async def find(self, model_id: str, refresh: bool = False) -> dict[str, Any] | None:
        """Look up a catalog entry by id, case-insensitively.

        Without ``refresh`` any cached snapshot is used regardless of age.
        """
        if refresh:
            snapshot = await self.refresh()
        else:
            snapshot, _ = await self.get(max_age=timedelta.max)
        wanted = model_id.lower()
        for entry in snapshot.models:
            entry_id = _string_field(entry, "id") if isinstance(entry, dict) else None
            if entry_id and entry_id.lower() == wanted:
                return entry
        return None

    async def search(
        self,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        sort: Optional[SortMode] = None,
        refresh: bool = False,
        max_age: timedelta | None = None,
    ) -> dict[str, Any]:
        query = (query or "").strip()
        limit = max(1, min(DEFAULT_SEARCH_LIMIT if limit is None else int(limit), MAX_SEARCH_LIMIT))
        snapshot, source = await self.get(refresh=refresh, max_age=max_age)

        terms = query.lower().split() if query else []
        scored = [
            (model, score_model(model, terms), model_created(model))
            for model in snapshot.models
            if isinstance(model, dict) and _string_field(model, "id")
        ]
        if terms:
            scored = [item for item in scored if item[1] > 0]

        sort = sort or ("relevance" if terms else "recent")
        if sort == "recent":
            scored.sort(key=lambda item: item[2] or 0, reverse=True)
        else:
            scored.sort(key=lambda item: (item[1], item[2] or 0), reverse=True)

        return {
            "query": query,
            "total": len(scored),
            "results": [
                {
                    "id": model["id"],
                    "name": _string_field(model, "name"),
                    "description": _string_field(model, "description"),
                    "created": created,
                    "context_length": _number_field(model, "context_length"),
                }
                for model, _, created in scored[:limit]
            ],
            "fetched_at": snapshot.fetched_at,
            "source": source,
        }
