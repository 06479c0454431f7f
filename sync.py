"""Whole-collection sync between the local ledger and a remote key/value store.

Every collection key is treated as one opaque value. Pulls overwrite local
keys with whatever the remote holds, pushes write every local key back, and
live remote changes replace a single key. The last writer wins per key.
"""

from __future__ import annotations

import http.client
import json
import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future
from contextlib import AbstractContextManager
from typing import Callable, Optional
from urllib.request import Request, urlopen

from sqlalchemy.orm import Session

from events import DATA_UPDATED, EventBus
from services import (
    COLLECTION_KEYS,
    BackupService,
    RecordInvalid,
    StorageFailure,
    SyncFailure,
)

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str, object], None]
SessionFactory = Callable[[], AbstractContextManager[Session]]


class RemoteStore(ABC):
    @abstractmethod
    def fetch_snapshot(self) -> dict[str, object]:
        ...

    @abstractmethod
    def put(self, key: str, value: object) -> None:
        ...

    @abstractmethod
    def subscribe(self, callback: ChangeCallback) -> None:
        ...


class FirebaseRemoteStore(RemoteStore):
    """Firebase Realtime Database over its REST API.

    Data lives under ``users/<user_id>/<key>``. Firebase has no push channel
    over plain REST, so :meth:`poll` compares a fresh snapshot with the last
    one seen and hands changed keys to the subscribers.
    """

    def __init__(self, base_url: str, user_id: str, timeout: float = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self._callbacks: list[ChangeCallback] = []
        self._last_seen: Optional[dict[str, object]] = None

    def _url(self, key: Optional[str] = None) -> str:
        path = f"users/{self.user_id}"
        if key:
            path = f"{path}/{key}"
        return f"{self.base_url}/{path}.json"

    def _request(self, method: str, url: str, body: object = None) -> object:
        data = None
        headers = {"Accept": "application/json"}
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        req = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
        except (OSError, http.client.HTTPException) as exc:
            raise SyncFailure(f"Remote {method} failed for {url}") from exc
        try:
            return json.loads(raw) if raw else None
        except json.JSONDecodeError as exc:
            raise SyncFailure("Unexpected remote response") from exc

    @staticmethod
    def _normalize(snapshot: object) -> dict[str, object]:
        if not isinstance(snapshot, dict):
            return {}
        out: dict[str, object] = {}
        for key in COLLECTION_KEYS:
            value = snapshot.get(key)
            if value is None:
                continue
            # Firebase turns sparse arrays into objects keyed by index
            if key != "settings" and isinstance(value, dict):
                value = list(value.values())
            out[key] = value
        return out

    def _get_snapshot(self) -> dict[str, object]:
        return self._normalize(self._request("GET", self._url()))

    def fetch_snapshot(self) -> dict[str, object]:
        snapshot = self._get_snapshot()
        self._last_seen = dict(snapshot)
        return snapshot

    def put(self, key: str, value: object) -> None:
        self._request("PUT", self._url(key), value)
        if self._last_seen is not None:
            self._last_seen[key] = value

    def subscribe(self, callback: ChangeCallback) -> None:
        self._callbacks.append(callback)

    def poll(self) -> list[str]:
        previous = self._last_seen
        snapshot = self._get_snapshot()
        self._last_seen = dict(snapshot)
        if previous is None:
            return []
        changed = [
            key
            for key in COLLECTION_KEYS
            if key in snapshot and snapshot[key] != previous.get(key)
        ]
        for key in changed:
            for callback in list(self._callbacks):
                callback(key, snapshot[key])
        return changed


class SyncManager:
    def __init__(
        self,
        session_factory: SessionFactory,
        remote: RemoteStore,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.session_factory = session_factory
        self.remote = remote
        self.bus = bus or EventBus()
        self._push_lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._ready: Optional[Future[bool]] = None
        self._online = True

    @property
    def is_online(self) -> bool:
        return self._online

    def initialize(self, background: bool = False) -> Future[bool]:
        """Pull once and start listening; the returned future resolves once."""
        with self._init_lock:
            if self._ready is not None:
                return self._ready
            self._ready = Future()
        if background:
            threading.Thread(
                target=self._initialize, args=(self._ready,), daemon=True
            ).start()
        else:
            self._initialize(self._ready)
        return self._ready

    def _initialize(self, ready: Future[bool]) -> None:
        try:
            ok = self.pull()
            if ok:
                self.remote.subscribe(self.handle_remote_change)
        except Exception:
            logger.exception("sync_initialize_failed")
            ok = False
        logger.info(f"sync_initialized: ok={ok}")
        ready.set_result(ok)

    def pull(self) -> bool:
        try:
            remote = self.remote.fetch_snapshot()
        except SyncFailure:
            logger.warning("sync_pull_failed: remote unavailable", exc_info=True)
            return False

        keys = [key for key in COLLECTION_KEYS if remote.get(key) is not None]
        if not keys:
            logger.info("sync_pull: remote empty, keeping local data")
            return True
        try:
            with self.session_factory() as session:
                BackupService(session).import_envelope({key: remote[key] for key in keys})
        except (RecordInvalid, StorageFailure):
            logger.warning("sync_pull_failed: could not apply remote data", exc_info=True)
            return False

        logger.info(f"sync_pull: keys={keys}")
        for key in keys:
            self.bus.publish(DATA_UPDATED, {"key": key, "data": remote[key]})
        return True

    def push(self) -> bool:
        if not self._push_lock.acquire(blocking=False):
            logger.info("sync_push_skipped: reason=in_flight")
            return False
        try:
            if not self._online:
                logger.info("sync_push_skipped: reason=offline")
                return False
            with self.session_factory() as session:
                snapshot = BackupService(session).export()
            for key in COLLECTION_KEYS:
                self.remote.put(key, snapshot[key])
            logger.info("sync_push: ok")
            return True
        except SyncFailure:
            logger.warning("sync_push_failed", exc_info=True)
            return False
        finally:
            self._push_lock.release()

    def handle_remote_change(self, key: str, value: object) -> bool:
        if key not in COLLECTION_KEYS or value is None:
            return False
        try:
            with self.session_factory() as session:
                BackupService(session).import_envelope({key: value})
        except (RecordInvalid, StorageFailure):
            logger.warning(f"sync_remote_change_rejected: key={key}", exc_info=True)
            return False
        logger.info(f"sync_remote_change: key={key}")
        self.bus.publish(DATA_UPDATED, {"key": key, "data": value})
        return True

    def set_online(self, online: bool) -> bool:
        was_online = self._online
        self._online = online
        logger.info(f"sync_connectivity: online={online}")
        if online and not was_online:
            return self.push()
        return False

    def poll(self) -> list[str]:
        poll = getattr(self.remote, "poll", None)
        if poll is None:
            return []
        try:
            return poll()
        except SyncFailure:
            logger.warning("sync_poll_failed", exc_info=True)
            return []
