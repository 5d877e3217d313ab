"""Directory object resolution with tombstone caching.

Principal ids from role assignments are resolved to directory objects in
batches through ``directoryObjects/getByIds``. Ids the directory does not
know are cached as ``None`` tombstones so repeated lookups of deleted
principals cost no further requests until the entry expires.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from azpim.domain.exceptions import ParseError
from azpim.domain.objects import Object, ObjectType
from azpim.infra.cache import ExpiringMap

if TYPE_CHECKING:
    from collections.abc import Iterable

    from azpim.infra.backend import Backend

logger = logging.getLogger(__name__)

BATCH_SIZE = 50


def _parse_values(body: Any) -> list[Object]:
    values = body.get("value") if isinstance(body, dict) else None
    if not isinstance(values, list):
        raise ParseError("unable to parse response: missing value array", body)
    return [Object.parse(value) for value in values]


class ObjectResolver:
    """Resolves principal ids and group memberships.

    Args:
        backend: Request backend used for directory calls.
        ttl: Cache lifetime in seconds. Defaults to the backend's
            ``cache_ttl`` setting.
    """

    def __init__(self, backend: Backend, ttl: float | None = None) -> None:
        self._backend = backend
        ttl = ttl if ttl is not None else backend.settings.cache_ttl
        self._objects: ExpiringMap[str, Object | None] = ExpiringMap(ttl)
        self._groups: ExpiringMap[str, frozenset[Object]] = ExpiringMap(ttl)
        self._in_flight: dict[str, asyncio.Task[dict[str, Object | None]]] = {}

    async def get_objects_by_ids(self, ids: Iterable[str]) -> dict[str, Object]:
        """Resolve ``ids`` to directory objects.

        Uncached ids are requested in chunks of at most 50, concurrently.
        Ids the directory does not return are tombstoned. An id already
        being fetched by a concurrent call is awaited rather than requested
        again.

        Returns:
            Mapping of each resolvable requested id to its object. Unknown
            ids are omitted.
        """
        wanted = sorted(set(ids))
        result: dict[str, Object] = {}
        missing: list[str] = []
        shared: set[asyncio.Task[dict[str, Object | None]]] = set()
        for object_id in wanted:
            if self._objects.contains_key(object_id):
                cached = self._objects.get(object_id)
                if cached is not None:
                    result[object_id] = cached
            elif object_id in self._in_flight:
                shared.add(self._in_flight[object_id])
            else:
                missing.append(object_id)

        chunks = [missing[i : i + BATCH_SIZE] for i in range(0, len(missing), BATCH_SIZE)]
        tasks = [asyncio.ensure_future(self._resolve_chunk(chunk)) for chunk in chunks]
        for chunk, task in zip(chunks, tasks, strict=True):
            for object_id in chunk:
                self._in_flight[object_id] = task
        if not tasks and not shared:
            return result

        if chunks:
            logger.debug(
                "resolving_objects",
                extra={"count": len(missing), "requests": len(chunks)},
            )
        resolved: dict[str, Object | None] = {}
        for found in await asyncio.gather(*tasks, *shared):
            resolved.update(found)
        for object_id in wanted:
            obj = resolved.get(object_id)
            if obj is not None:
                result[object_id] = obj
        return result

    async def _resolve_chunk(self, ids: list[str]) -> dict[str, Object | None]:
        try:
            body = await self._backend.graph_request(
                "POST",
                "/v1.0/directoryObjects/getByIds",
                json={"ids": ids},
            )
            by_id = {obj.id: obj for obj in _parse_values(body)}
            resolved: dict[str, Object | None] = {}
            for object_id in ids:
                obj = by_id.get(object_id)
                self._objects.insert(object_id, obj)
                resolved[object_id] = obj
                if obj is None:
                    logger.debug("object_not_found", extra={"object_id": object_id})
            return resolved
        finally:
            for object_id in ids:
                self._in_flight.pop(object_id, None)

    async def group_members(self, group_id: str, nested: bool = False) -> frozenset[Object]:
        """Members of ``group_id``.

        With ``nested``, member groups are expanded transitively. Each group
        is expanded at most once, so cyclic nesting terminates.
        """
        members = await self._direct_members(group_id)
        if not nested:
            return members

        result = set(members)
        done = {group_id}
        todo = [m.id for m in members if m.object_type is ObjectType.GROUP]
        while todo:
            current = todo.pop()
            if current in done:
                continue
            done.add(current)
            for member in await self._direct_members(current):
                result.add(member)
                if member.object_type is ObjectType.GROUP and member.id not in done:
                    todo.append(member.id)
        return frozenset(result)

    async def _direct_members(self, group_id: str) -> frozenset[Object]:
        cached = self._groups.get(group_id)
        if cached is not None:
            return cached

        members: set[Object] = set()
        path: str | None = f"/v1.0/groups/{group_id}/members"
        next_link: str | None = None
        while True:
            body = await self._backend.graph_request("GET", path, url=next_link)
            members.update(_parse_values(body))
            link = body.get("@odata.nextLink")
            if not isinstance(link, str) or not link:
                break
            next_link = link

        for member in members:
            self._objects.insert(member.id, member)
        result = frozenset(members)
        self._groups.insert(group_id, result)
        return result

    def clear_cache(self) -> None:
        self._objects.clear()
        self._groups.clear()
