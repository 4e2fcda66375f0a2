"""Persistence for pending and verified records.

Two backends share one item shape. When a DynamoDB table is configured it
is authoritative; the local JSON file takes writes when the table is absent
or failing and can additionally receive a best-effort mirror copy. Reads
prefer the table and fall back to the file for keys written before the
table was configured.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Final, Protocol, TypeVar

from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from .errors import PersistenceError
from .models import CommunityConfig, Identity, PendingVerification, VerifiedRecord

log: Final = logging.getLogger("bio-verifier")

Item = dict[str, object]
T = TypeVar("T")


def _item_id(key: dict[str, str]) -> str:
    return f"{key['pk']}|{key['sk']}"


class Backend(Protocol):
    name: str

    def get(self, key: dict[str, str]) -> Item | None: ...

    def put(self, item: Item) -> None: ...

    def delete(self, key: dict[str, str]) -> None: ...

    def query(self, pk: str, sk_prefix: str) -> list[Item]: ...

    def scan(self) -> list[Item]: ...


class DynamoBackend:
    """Adapter over a boto3 DynamoDB ``Table`` keyed by ``pk``/``sk``."""

    name = "dynamodb"

    def __init__(self, table) -> None:
        self._table = table

    def get(self, key: dict[str, str]) -> Item | None:
        try:
            resp = self._table.get_item(Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"get_item failed for {key}: {exc}") from exc
        return resp.get("Item")

    def put(self, item: Item) -> None:
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"put_item failed: {exc}") from exc

    def delete(self, key: dict[str, str]) -> None:
        try:
            self._table.delete_item(Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"delete_item failed for {key}: {exc}") from exc

    def query(self, pk: str, sk_prefix: str) -> list[Item]:
        items: list[Item] = []
        kwargs: dict[str, object] = {
            "KeyConditionExpression": Key("pk").eq(pk)
            & Key("sk").begins_with(sk_prefix),
            "Select": "ALL_ATTRIBUTES",
        }
        try:
            while True:
                resp = self._table.query(**kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"query failed for {pk}: {exc}") from exc

    def scan(self) -> list[Item]:
        items: list[Item] = []
        kwargs: dict[str, object] = {}
        try:
            while True:
                resp = self._table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                last_key = resp.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except (BotoCoreError, ClientError) as exc:
            raise PersistenceError(f"scan failed: {exc}") from exc


class LocalFileBackend:
    """All items in one JSON document, rewritten atomically on each write."""

    name = "file"

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Item]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self.path}: {exc}") from exc
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Item]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}") from exc

    def get(self, key: dict[str, str]) -> Item | None:
        return self._load().get(_item_id(key))

    def put(self, item: Item) -> None:
        data = self._load()
        data[_item_id({"pk": str(item["pk"]), "sk": str(item["sk"])})] = item
        self._save(data)

    def delete(self, key: dict[str, str]) -> None:
        data = self._load()
        if data.pop(_item_id(key), None) is not None:
            self._save(data)

    def query(self, pk: str, sk_prefix: str) -> list[Item]:
        return [
            item
            for item in self.scan()
            if item.get("pk") == pk and str(item.get("sk", "")).startswith(sk_prefix)
        ]

    def scan(self) -> list[Item]:
        data = self._load()
        return [data[name] for name in sorted(data)]


class VerificationStore:
    def __init__(
        self,
        file_backend: LocalFileBackend,
        durable: Backend | None = None,
        *,
        mirror_to_file: bool = True,
    ) -> None:
        self._file = file_backend
        self._durable = durable
        self._mirror = mirror_to_file

    @property
    def durable_enabled(self) -> bool:
        return self._durable is not None

    # ----- write/read policy -----
    def _write(self, item: Item) -> None:
        if self._durable is not None:
            try:
                self._durable.put(item)
            except PersistenceError as exc:
                log.error("Durable write failed, using local file: %s", exc)
            else:
                if self._mirror:
                    self._best_effort(self._file.put, item)
                return
        self._file.put(item)

    def _delete(self, key: dict[str, str]) -> None:
        if self._durable is not None:
            try:
                self._durable.delete(key)
            except PersistenceError as exc:
                log.error("Durable delete failed, using local file: %s", exc)
            else:
                # The file may still hold a pre-migration copy.
                self._best_effort(self._file.delete, key)
                return
        self._file.delete(key)

    def _read(self, key: dict[str, str]) -> Item | None:
        if self._durable is not None:
            try:
                item = self._durable.get(key)
            except PersistenceError as exc:
                log.error("Durable read failed, using local file: %s", exc)
            else:
                if item:
                    return item
        return self._file.get(key)

    def _collect(self, fetch: Callable[[Backend], list[Item]]) -> list[Item]:
        merged: dict[str, Item] = {}
        sources: list[Backend] = [self._file]
        if self._durable is not None:
            sources.append(self._durable)
        for backend in sources:
            try:
                items = fetch(backend)
            except PersistenceError as exc:
                if backend is self._file:
                    raise
                log.error("Durable listing failed, using local file only: %s", exc)
                continue
            for item in items:
                merged[_item_id({"pk": str(item["pk"]), "sk": str(item["sk"])})] = item
        return [merged[name] for name in sorted(merged)]

    def _best_effort(self, action: Callable[[T], None], arg: T) -> None:
        try:
            action(arg)
        except PersistenceError as exc:
            log.warning("Local file mirror failed: %s", exc)

    @staticmethod
    def _parse(items: Iterable[Item], factory: Callable[[Item], T]) -> list[T]:
        parsed: list[T] = []
        for item in items:
            try:
                parsed.append(factory(item))
            except (KeyError, IndexError, TypeError, ValueError) as exc:
                log.warning("Skipping malformed record %s: %s", item.get("sk"), exc)
        return parsed

    # ----- Pending -----
    def save_pending(self, record: PendingVerification) -> None:
        self._write(record.to_item())

    def get_pending(self, identity: Identity) -> PendingVerification | None:
        item = self._read(PendingVerification.key(identity))
        return PendingVerification.from_item(item) if item else None

    def delete_pending(self, identity: Identity) -> None:
        self._delete(PendingVerification.key(identity))

    def list_pending(self, community_id: int) -> list[PendingVerification]:
        pk = PendingVerification.key(Identity(community_id, 0))["pk"]
        items = self._collect(
            lambda backend: backend.query(pk, PendingVerification.SK_PREFIX)
        )
        return self._parse(items, PendingVerification.from_item)

    def list_all_pending(self) -> list[PendingVerification]:
        items = self._collect(lambda backend: backend.scan())
        pending = [
            item
            for item in items
            if str(item.get("sk", "")).startswith(PendingVerification.SK_PREFIX)
        ]
        return self._parse(pending, PendingVerification.from_item)

    # ----- Verified -----
    def save_verified(self, record: VerifiedRecord) -> None:
        self._write(record.to_item())

    def get_verified(self, identity: Identity) -> VerifiedRecord | None:
        item = self._read(VerifiedRecord.key(identity))
        return VerifiedRecord.from_item(item) if item else None

    def delete_verified(self, identity: Identity) -> None:
        self._delete(VerifiedRecord.key(identity))

    def list_verified(self, community_id: int) -> list[VerifiedRecord]:
        pk = VerifiedRecord.key(Identity(community_id, 0))["pk"]
        items = self._collect(lambda backend: backend.query(pk, VerifiedRecord.SK_PREFIX))
        return self._parse(items, VerifiedRecord.from_item)

    # ----- Community configuration -----
    def save_config(self, config: CommunityConfig) -> None:
        self._write(config.to_item())

    def get_config(self, community_id: int) -> CommunityConfig | None:
        item = self._read(CommunityConfig.key(community_id))
        return CommunityConfig.from_item(item) if item else None
