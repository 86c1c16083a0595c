"""
Table-oriented access to the hosted Supabase project, plus an in-memory stand-in.

Both stores speak the same small vocabulary (select / insert / upsert / delete /
count / rpc) and raise StoreError for every persistence failure so callers can
degrade without catching transport-specific exceptions.
"""

from __future__ import annotations

import copy
import itertools
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from .models import utc_now_iso

Filter = Tuple[str, str, Any]

_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": lambda left, right: left == right,
    "neq": lambda left, right: left != right,
    "gt": lambda left, right: left is not None and left > right,
    "gte": lambda left, right: left is not None and left >= right,
    "lt": lambda left, right: left is not None and left < right,
    "lte": lambda left, right: left is not None and left <= right,
}


class StoreError(Exception):
    """Raised for any failure talking to the persistence layer."""


class RecordStore:
    """
    Interface shared by the Supabase and in-memory stores.
    """

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Sequence[Filter]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        raise NotImplementedError

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        raise NotImplementedError

    def upsert(self, table: str, records: Iterable[Dict[str, Any]], on_conflict: str) -> None:
        raise NotImplementedError

    def delete(self, table: str, filters: Sequence[Filter]) -> None:
        raise NotImplementedError

    def count(self, table: str) -> int:
        raise NotImplementedError

    def rpc(self, name: str, params: Dict[str, Any]) -> Any:
        raise NotImplementedError


def _format_filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class SupabaseRecordStore(RecordStore):
    """
    Talks to Supabase through its PostgREST endpoint (`/rest/v1`).
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Sequence[Filter]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        params = self._filter_params(filters)
        params["select"] = columns
        if order:
            params["order"] = f"{order}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        response = self._request("GET", table, params=params)
        rows = self._decode(response)
        if not isinstance(rows, list):
            raise StoreError(f"Unexpected payload from {table}: {type(rows).__name__}")
        return rows

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        self._request("POST", table, json=record, headers={"Prefer": "return=minimal"})

    def upsert(self, table: str, records: Iterable[Dict[str, Any]], on_conflict: str) -> None:
        payload = list(records)
        if not payload:
            return
        self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            json=payload,
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    def delete(self, table: str, filters: Sequence[Filter]) -> None:
        if not filters:
            raise StoreError(f"Refusing to delete from {table} without filters")
        self._request(
            "DELETE",
            table,
            params=self._filter_params(filters),
            headers={"Prefer": "return=minimal"},
        )

    def count(self, table: str) -> int:
        response = self._request(
            "GET",
            table,
            params={"select": "id", "limit": "1"},
            headers={"Prefer": "count=exact"},
        )
        content_range = response.headers.get("Content-Range", "")
        _, _, total = content_range.partition("/")
        try:
            return int(total)
        except ValueError as exc:
            raise StoreError(f"Missing row count for {table}: {content_range!r}") from exc

    def rpc(self, name: str, params: Dict[str, Any]) -> Any:
        response = self._request("POST", f"rpc/{name}", json=params)
        if not response.content:
            return None
        return self._decode(response)

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _filter_params(filters: Optional[Sequence[Filter]]) -> Dict[str, str]:
        params: Dict[str, str] = {}
        for column, operator, value in filters or []:
            if operator not in _OPERATORS:
                raise StoreError(f"Unsupported filter operator: {operator}")
            params[column] = f"{operator}.{_format_filter_value(value)}"
        return params

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        url = f"{self.base_url}/{path}"
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc
        return response

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"Invalid JSON from {response.url}") from exc


def _increment_pattern_usage(store: "InMemoryRecordStore", params: Dict[str, Any]) -> None:
    trigger = params.get("pattern_trigger")
    for row in store.tables.get("ai_patterns", []):
        if row.get("trigger") == trigger:
            row["usage_count"] = int(row.get("usage_count") or 0) + 1
            row["last_used"] = utc_now_iso()


class InMemoryRecordStore(RecordStore):
    """
    Process-local store with the same semantics, used offline and in tests.

    Column projections and embedded joins in `columns` are ignored; rows are
    returned whole. Tables listed in `failing_tables` raise StoreError.
    """

    def __init__(
        self,
        tables: Optional[Dict[str, List[dict]]] = None,
        procedures: Optional[Dict[str, Callable[["InMemoryRecordStore", Dict[str, Any]], Any]]] = None,
    ) -> None:
        self.tables: Dict[str, List[dict]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.procedures = {"increment_pattern_usage": _increment_pattern_usage}
        self.procedures.update(procedures or {})
        self.failing_tables: set = set()
        self.calls: List[Tuple[str, str]] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Sequence[Filter]] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        with self._lock:
            self._check("select", table)
            rows = [row for row in self.tables.get(table, []) if self._matches(row, filters)]
            if order:
                present = [row for row in rows if row.get(order) is not None]
                missing = [row for row in rows if row.get(order) is None]
                present.sort(key=lambda row: row[order], reverse=descending)
                rows = present + missing
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def insert(self, table: str, record: Dict[str, Any]) -> None:
        with self._lock:
            self._check("insert", table)
            row = copy.deepcopy(record)
            row.setdefault("id", next(self._ids))
            self.tables.setdefault(table, []).append(row)

    def upsert(self, table: str, records: Iterable[Dict[str, Any]], on_conflict: str) -> None:
        with self._lock:
            self._check("upsert", table)
            rows = self.tables.setdefault(table, [])
            for record in records:
                existing = next(
                    (row for row in rows if row.get(on_conflict) == record.get(on_conflict)),
                    None,
                )
                if existing is None:
                    row = copy.deepcopy(record)
                    row.setdefault("id", next(self._ids))
                    rows.append(row)
                else:
                    existing.update(copy.deepcopy(record))

    def delete(self, table: str, filters: Sequence[Filter]) -> None:
        with self._lock:
            self._check("delete", table)
            if not filters:
                raise StoreError(f"Refusing to delete from {table} without filters")
            self.tables[table] = [
                row for row in self.tables.get(table, []) if not self._matches(row, filters)
            ]

    def count(self, table: str) -> int:
        with self._lock:
            self._check("count", table)
            return len(self.tables.get(table, []))

    def rpc(self, name: str, params: Dict[str, Any]) -> Any:
        with self._lock:
            self._check("rpc", name)
            procedure = self.procedures.get(name)
            if procedure is None:
                raise StoreError(f"Unknown procedure: {name}")
            return procedure(self, params)

    def _check(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if table in self.failing_tables:
            raise StoreError(f"{operation} on {table} failed")

    @staticmethod
    def _matches(row: Dict[str, Any], filters: Optional[Sequence[Filter]]) -> bool:
        for column, operator, value in filters or []:
            compare = _OPERATORS.get(operator)
            if compare is None:
                raise StoreError(f"Unsupported filter operator: {operator}")
            try:
                if not compare(row.get(column), value):
                    return False
            except TypeError:
                return False
        return True
