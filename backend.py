import itertools
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import WatchError

from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD, REDIS_DB, STORE_BACKEND
from redis_keys import REDIS_ROOM_TREE_KEY, REDIS_ROOM_SEQ_KEY, REDIS_ROOM_TREE_PATTERN
from logging_config import get_logger

logger = get_logger(__name__)

ROOT = "rooms"
FORBIDDEN_KEY_CHARS = frozenset("/.#$[]")


def now_ms() -> int:
    """Server-side timestamp in epoch milliseconds."""
    return int(time.time() * 1000)


def is_valid_key(key) -> bool:
    return isinstance(key, str) and key != "" and not (FORBIDDEN_KEY_CHARS & set(key))


def format_push_key(seq: int) -> str:
    # Zero padded so lexicographic order equals generation order
    return f"n{seq:016d}"


def split_path(path: str) -> List[str]:
    segments = [segment for segment in path.split("/") if segment]
    if not segments or segments[0] != ROOT:
        raise ValueError(f"Store paths must start with '{ROOT}': {path!r}")
    return segments


def join_path(*parts: str) -> str:
    return "/".join(part for part in parts if part)


def normalize(value: Any) -> Any:
    """Return a detached, JSON-compatible copy of value with empty branches pruned.

    Mappings that end up empty collapse to None, which the store treats as a delete.
    """
    value = json.loads(json.dumps(value))
    return _prune(value)


def _prune(value: Any) -> Any:
    if not isinstance(value, dict):
        return value
    pruned = {}
    for k, v in value.items():
        if not is_valid_key(k):
            raise ValueError(f"Invalid key {k!r}: keys must be non-empty and must not contain any of '/.#$[]'")
        v = _prune(v)
        if v is not None:
            pruned[k] = v
    return pruned or None


class StoreBackend(ABC):
    """Keyed tree store rooted at the `rooms` collection.

    Every call is individually consistent. Nothing here makes a read followed
    by a write atomic; callers live with last-write-wins.
    """

    @abstractmethod
    async def get(self, path: str) -> Any:
        """Return the subtree at path, or None when nothing is stored there."""

    @abstractmethod
    async def set(self, path: str, value: Any) -> None:
        """Overwrite the subtree at path. None or an empty mapping deletes it."""

    @abstractmethod
    async def update(self, path: str, values: Dict[str, Any]) -> None:
        """Overwrite each child of path named in values, leaving other children alone.

        Child names may be multi-segment (`ice_candidates/p2/candidate_1_0`).
        """

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the subtree at path. Deleting an absent path is a no-op."""

    @abstractmethod
    async def push(self, path: str, value: Any) -> str:
        """Append value under a generated, order-preserving key and return the key."""

    async def close(self) -> None:
        return None


class MemoryBackend(StoreBackend):
    """In-process tree store. Suitable for tests and single-process deployments."""

    def __init__(self):
        self._tree: Dict[str, Any] = {}
        self._seq = itertools.count(1)
        logger.info("Initializing MemoryBackend")

    async def get(self, path: str) -> Any:
        node = self._tree
        for segment in split_path(path):
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return json.loads(json.dumps(node))

    async def set(self, path: str, value: Any) -> None:
        self._write(split_path(path), normalize(value))

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        segments = split_path(path)
        writes = [(segments + split_child(child), normalize(value)) for child, value in values.items()]
        for child_segments, value in writes:
            self._write(child_segments, value)

    async def delete(self, path: str) -> None:
        self._write(split_path(path), None)

    async def push(self, path: str, value: Any) -> str:
        key = format_push_key(next(self._seq))
        self._write(split_path(path) + [key], normalize(value))
        return key

    def _write(self, segments: List[str], value: Any) -> None:
        if value is None:
            self._remove(segments)
            return
        node = self._tree
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value

    def _remove(self, segments: List[str]) -> None:
        trail = []
        node = self._tree
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                return
            trail.append((node, segment))
            node = child
        node.pop(segments[-1], None)
        # Drop ancestors left empty so an emptied room disappears entirely
        for parent, segment in reversed(trail):
            if parent[segment]:
                break
            del parent[segment]


def split_child(child: str) -> List[str]:
    segments = [segment for segment in child.split("/") if segment]
    if not segments:
        raise ValueError(f"Invalid child path: {child!r}")
    return segments


def _covers(prefix: str, field: str) -> bool:
    """True when writing at prefix replaces the stored leaf field."""
    if not prefix:
        return True
    return field == prefix or field.startswith(prefix + "/") or prefix.startswith(field + "/")


def flatten(prefix: str, value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    if isinstance(value, dict):
        fields = {}
        for k, v in value.items():
            fields.update(flatten(join_path(prefix, k), v))
        return fields
    return {prefix: json.dumps(value)}


def unflatten(fields: Dict[str, str], prefix: str = "") -> Any:
    if prefix and prefix in fields:
        return json.loads(fields[prefix])
    tree: Dict[str, Any] = {}
    start = len(prefix) + 1 if prefix else 0
    for field in sorted(fields):
        if prefix and not field.startswith(prefix + "/"):
            continue
        node = tree
        *parents, leaf = field[start:].split("/")
        for segment in parents:
            node = node.setdefault(segment, {})
        node[leaf] = json.loads(fields[field])
    return tree or None


class RedisBackend(StoreBackend):
    """Tree store on Redis: one hash per room, one field per leaf path, JSON values."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        if redis_client is None:
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, db=REDIS_DB, decode_responses=True)
        self.redis_client = redis_client

    @staticmethod
    def _locate(path: str) -> Tuple[Optional[str], str]:
        segments = split_path(path)
        if len(segments) == 1:
            return None, ""
        return segments[1], join_path(*segments[2:])

    async def get(self, path: str) -> Any:
        room_id, rel = self._locate(path)
        if room_id is None:
            rooms = {}
            async for key, fields in self._iter_rooms():
                tree = unflatten(fields)
                if tree:
                    rooms[key[len(REDIS_ROOM_TREE_KEY.format(slug="")):]] = tree
            logger.debug(f"Read {len(rooms)} rooms from Redis")
            return rooms or None
        fields = await self.redis_client.hgetall(REDIS_ROOM_TREE_KEY.format(slug=room_id))
        return unflatten(fields, rel)

    async def set(self, path: str, value: Any) -> None:
        room_id, rel = self._require_room(path)
        await self._rewrite(room_id, {rel: normalize(value)})

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        room_id, rel = self._require_room(path)
        writes = {}
        for child, value in values.items():
            writes[join_path(rel, *split_child(child))] = normalize(value)
        if writes:
            await self._rewrite(room_id, writes)

    async def delete(self, path: str) -> None:
        room_id, rel = self._locate(path)
        if room_id is None:
            async for key, _ in self._iter_rooms():
                await self._drop_room(key[len(REDIS_ROOM_TREE_KEY.format(slug="")):])
            return
        if not rel:
            await self._drop_room(room_id)
            return
        await self._rewrite(room_id, {rel: None})

    async def push(self, path: str, value: Any) -> str:
        room_id, rel = self._require_room(path)
        seq = await self.redis_client.incr(REDIS_ROOM_SEQ_KEY.format(slug=room_id))
        key = format_push_key(seq)
        await self._rewrite(room_id, {join_path(rel, key): normalize(value)})
        return key

    async def close(self) -> None:
        logger.info("Closing Redis connection")
        await self.redis_client.aclose()

    def _require_room(self, path: str) -> Tuple[str, str]:
        room_id, rel = self._locate(path)
        if room_id is None:
            raise ValueError(f"Cannot write the whole '{ROOT}' collection: {path!r}")
        return room_id, rel

    async def _iter_rooms(self):
        async for key in self.redis_client.scan_iter(match=REDIS_ROOM_TREE_PATTERN):
            yield key, await self.redis_client.hgetall(key)

    async def _drop_room(self, room_id: str) -> None:
        deleted = await self.redis_client.delete(
            REDIS_ROOM_TREE_KEY.format(slug=room_id),
            REDIS_ROOM_SEQ_KEY.format(slug=room_id),
        )
        logger.debug(f"Room {room_id} dropped from Redis: {deleted} keys removed")

    async def _rewrite(self, room_id: str, writes: Dict[str, Any]) -> None:
        """Replace the leaves under each write prefix inside one WATCH/MULTI transaction."""
        key = REDIS_ROOM_TREE_KEY.format(slug=room_id)
        new_fields: Dict[str, str] = {}
        for prefix, value in writes.items():
            new_fields.update(flatten(prefix, value))

        async with self.redis_client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    existing: Iterable[str] = await pipe.hkeys(key)
                    stale = [field for field in existing if any(_covers(prefix, field) for prefix in writes)]
                    if not stale and not new_fields:
                        return
                    pipe.multi()
                    if stale:
                        pipe.hdel(key, *stale)
                    if new_fields:
                        pipe.hset(key, mapping=new_fields)
                    await pipe.execute()
                    logger.debug(f"Room {room_id} rewritten: {len(stale)} fields removed, {len(new_fields)} fields written")
                    return
                except WatchError:
                    logger.debug(f"Concurrent write on room {room_id}, retrying transaction")
                    continue


def build_backend(kind: str = STORE_BACKEND) -> StoreBackend:
    if kind == "memory":
        return MemoryBackend()
    if kind == "redis":
        return RedisBackend()
    raise ValueError(f"Unknown store backend: {kind!r}")
