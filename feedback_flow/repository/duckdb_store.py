"""DuckDB-backed storage for purchases and their workflow records."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Type

import duckdb

from ..errors import StorageError
from ..models import Feedback, Publication, Purchase, Refund
from .base import EntityRepository, FeedbackFlowDB, T
from .memory import COLLECTIONS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Table:
    name: str
    model: Type[Any]
    # (attribute, column, SQL type)
    columns: Tuple[Tuple[str, str, str], ...]
    key: str

    def column_for(self, attribute: str) -> str:
        for attr, column, _ in self.columns:
            if attr == attribute:
                return column
        raise ValueError(f"Unknown field '{attribute}' for table {self.name}")


_PURCHASES = _Table(
    name="purchases",
    model=Purchase,
    columns=(
        ("id", "id", "TEXT PRIMARY KEY"),
        ("tester_uuid", "tester_uuid", "TEXT NOT NULL"),
        ("date", "date", "TEXT NOT NULL"),
        ("order", "order_number", "TEXT"),
        ("description", "description", "TEXT"),
        ("amount", "amount", "DOUBLE"),
        ("screenshot", "screenshot", "TEXT"),
        ("refunded", "refunded", "BOOLEAN DEFAULT FALSE"),
        ("screenshot_summary", "screenshot_summary", "TEXT"),
        ("created_at", "created_at", "TEXT"),
        ("updated_at", "updated_at", "TEXT"),
    ),
    key="id",
)
_FEEDBACKS = _Table(
    name="feedbacks",
    model=Feedback,
    columns=(
        ("purchase", "purchase", "TEXT NOT NULL"),
        ("date", "date", "TEXT NOT NULL"),
        ("feedback", "feedback", "TEXT"),
    ),
    key="purchase",
)
_PUBLICATIONS = _Table(
    name="publications",
    model=Publication,
    columns=(
        ("purchase", "purchase", "TEXT NOT NULL"),
        ("date", "date", "TEXT NOT NULL"),
        ("screenshot", "screenshot", "TEXT"),
    ),
    key="purchase",
)
_REFUNDS = _Table(
    name="refunds",
    model=Refund,
    columns=(
        ("purchase", "purchase", "TEXT NOT NULL"),
        ("date", "date", "TEXT NOT NULL"),
        ("refund_date", "refund_date", "TEXT NOT NULL"),
        ("amount", "amount", "DOUBLE"),
        ("transaction_id", "transaction_id", "TEXT"),
    ),
    key="purchase",
)
_TABLES = (_PURCHASES, _FEEDBACKS, _PUBLICATIONS, _REFUNDS)


def _quote(identifier: str) -> str:
    return f'"{identifier}"'


class DuckDBRepository(EntityRepository[T]):
    """Repository over one DuckDB table, iterated in insertion order."""

    def __init__(self, store: "DuckDBStore", table: _Table) -> None:
        self._store = store
        self._table = table

    def get_all(self) -> List[T]:
        return self._select("", [])

    def filter_by(self, **criteria: Any) -> List[T]:
        clauses = []
        params: List[Any] = []
        for attribute, value in criteria.items():
            clauses.append(f"{_quote(self._table.column_for(attribute))} = ?")
            params.append(value)
        where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
        return self._select(where, params)

    def add(self, item: T) -> str:
        with self._store.connection() as conn:
            self._insert(conn, item)
            self._after_insert(conn, item)
        return str(getattr(item, self._table.key))

    def _insert(self, conn: duckdb.DuckDBPyConnection, item: T) -> None:
        columns = ", ".join(_quote(column) for _, column, _ in self._table.columns)
        placeholders = ", ".join("?" for _ in self._table.columns)
        values = [getattr(item, attr) for attr, _, _ in self._table.columns]
        conn.execute(
            f"INSERT INTO {self._table.name} ({columns}) VALUES ({placeholders})",
            values,
        )

    def _after_insert(self, conn: duckdb.DuckDBPyConnection, item: T) -> None:
        return None

    def _select(self, where: str, params: Sequence[Any]) -> List[T]:
        columns = ", ".join(_quote(column) for _, column, _ in self._table.columns)
        sql = f"SELECT {columns} FROM {self._table.name} {where}ORDER BY seq"
        with self._store.connection() as conn:
            rows = conn.execute(sql, list(params)).fetchall()
        attributes = [attr for attr, _, _ in self._table.columns]
        return [self._table.model(**dict(zip(attributes, row))) for row in rows]


class PurchaseTable(DuckDBRepository[Purchase]):
    def add(self, item: Purchase) -> str:
        if not item.id:
            item.id = str(uuid.uuid4())
        return super().add(item)


class RefundTable(DuckDBRepository[Refund]):
    def _after_insert(self, conn: duckdb.DuckDBPyConnection, item: Refund) -> None:
        conn.execute("UPDATE purchases SET refunded = TRUE WHERE id = ?", [item.purchase])


class DuckDBStore(FeedbackFlowDB):
    """Manage the Feedback Flow tables stored in a DuckDB file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.purchases = PurchaseTable(self, _PURCHASES)
        self.feedbacks = DuckDBRepository[Feedback](self, _FEEDBACKS)
        self.publications = DuckDBRepository[Publication](self, _PUBLICATIONS)
        self.refunds = RefundTable(self, _REFUNDS)
        self._ensure_tables()

    @contextmanager
    def connection(self) -> Iterator[duckdb.DuckDBPyConnection]:
        try:
            with duckdb.connect(str(self.db_path)) as conn:
                yield conn
        except duckdb.Error as exc:
            logger.error("DuckDB operation failed on %s: %s", self.db_path, exc)
            raise StorageError(str(exc)) from exc

    def reset(self, data: Dict[str, List[Dict[str, Any]]]) -> None:
        loaders: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "purchases": Purchase.from_dict,
            "feedbacks": Feedback.from_dict,
            "publications": Publication.from_dict,
            "refunds": Refund.from_dict,
        }
        with self.connection() as conn:
            for table in _TABLES:
                conn.execute(f"DELETE FROM {table.name}")
            for name in COLLECTIONS:
                repository: DuckDBRepository = getattr(self, name)
                for row in data.get(name, []):
                    repository._insert(conn, loaders[name](row))

    def get_raw_data(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            name: [item.to_dict() for item in getattr(self, name).get_all()]
            for name in COLLECTIONS
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _ensure_tables(self) -> None:
        with self.connection() as conn:
            for table in _TABLES:
                conn.execute(f"CREATE SEQUENCE IF NOT EXISTS {table.name}_seq START 1")
                columns = ",\n".join(
                    f"    {_quote(column)} {sql_type}" for _, column, sql_type in table.columns
                )
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table.name} (
                        seq BIGINT DEFAULT nextval('{table.name}_seq'),
                    {columns}
                    )
                    """
                )


def open_store(db_path: Optional[Path]) -> Optional[DuckDBStore]:
    if db_path is None:
        return None
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return DuckDBStore(db_path)
