"""SQLite relational store for cost records, documents and chunk records."""

import sqlite3
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    ChunkRecord,
    Document,
    InstallationCost,
    Product,
    ProductionCost,
    Project,
    TransportationCost,
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    category TEXT NOT NULL,
    unit TEXT NOT NULL,
    description TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS production_costs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL,
    material_cost REAL NOT NULL,
    labor_cost REAL NOT NULL,
    overhead_cost REAL NOT NULL,
    total_cost REAL NOT NULL,
    cost_per_unit REAL NOT NULL,
    quantity INTEGER NOT NULL,
    date DATE NOT NULL,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (product_id) REFERENCES products(id)
);

CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    location TEXT,
    start_date DATE,
    end_date DATE,
    status TEXT DEFAULT 'active',
    total_estimated_cost REAL,
    total_actual_cost REAL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS transportation_costs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    distance_km REAL NOT NULL,
    fuel_cost REAL NOT NULL,
    vehicle_type TEXT NOT NULL,
    driver_cost REAL NOT NULL,
    toll_fees REAL DEFAULT 0,
    total_cost REAL NOT NULL,
    date DATE NOT NULL,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS installation_costs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    labor_cost REAL NOT NULL,
    equipment_cost REAL NOT NULL,
    duration_hours REAL NOT NULL,
    crane_cost REAL DEFAULT 0,
    total_cost REAL NOT NULL,
    date DATE NOT NULL,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER,
    filename TEXT NOT NULL,
    file_path TEXT NOT NULL,
    file_type TEXT NOT NULL,
    file_size INTEGER,
    uploaded_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    vector_indexed BOOLEAN DEFAULT FALSE,
    vector_id TEXT,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS vector_metadata (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    document_id INTEGER NOT NULL,
    chunk_index INTEGER NOT NULL,
    chunk_text TEXT NOT NULL,
    vector_id TEXT NOT NULL,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (document_id) REFERENCES documents(id)
);

CREATE INDEX IF NOT EXISTS idx_production_costs_product ON production_costs(product_id);
CREATE INDEX IF NOT EXISTS idx_production_costs_date ON production_costs(date);
CREATE INDEX IF NOT EXISTS idx_transportation_costs_project ON transportation_costs(project_id);
CREATE INDEX IF NOT EXISTS idx_installation_costs_project ON installation_costs(project_id);
CREATE INDEX IF NOT EXISTS idx_documents_project ON documents(project_id);
CREATE INDEX IF NOT EXISTS idx_vector_metadata_document ON vector_metadata(document_id);
"""


def _document(row: sqlite3.Row) -> Document:
    data = dict(row)
    data["vector_indexed"] = bool(data["vector_indexed"])
    return Document(**data)


class CostStore:
    """
    Manages the SQLite cost-tracking database.

    One connection is shared by every caller (API worker threads included),
    so each statement and its commit run under ``_lock``.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._init_db()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._lock:
            self.conn.executescript(SCHEMA)
            self.conn.commit()

    def _insert(self, table: str, values: Dict[str, Any]) -> int:
        columns = [k for k, v in values.items() if k not in ("id", "created_at", "uploaded_at")]
        placeholders = ", ".join("?" for _ in columns)
        with self._lock:
            cursor = self.conn.execute(
                f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [values[c] for c in columns],
            )
            self.conn.commit()
            return cursor.lastrowid

    def _write(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run one write statement and commit it. Returns the affected row count."""
        with self._lock:
            cursor = self.conn.execute(sql, params)
            self.conn.commit()
            return cursor.rowcount

    def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, params).fetchall()

    # ============ Products & projects ============

    def create_product(self, product: Product) -> int:
        return self._insert("products", asdict(product))

    def get_product(self, product_id: int) -> Optional[Product]:
        row = self._fetchone("SELECT * FROM products WHERE id = ?", (product_id,))
        return Product(**dict(row)) if row else None

    def create_project(self, project: Project) -> int:
        return self._insert("projects", asdict(project))

    def get_project(self, project_id: int) -> Optional[Project]:
        row = self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        return Project(**dict(row)) if row else None

    def update_project_costs(self, project_id: int) -> None:
        """Recompute a project's actual cost from its transportation and installation records."""
        self._write(
            """
            UPDATE projects
            SET total_actual_cost = (
                SELECT COALESCE(SUM(total_cost), 0) FROM (
                    SELECT total_cost FROM transportation_costs WHERE project_id = ?
                    UNION ALL
                    SELECT total_cost FROM installation_costs WHERE project_id = ?
                )
            )
            WHERE id = ?
            """,
            (project_id, project_id, project_id),
        )

    # ============ Cost records ============

    def create_production_cost(self, cost: ProductionCost) -> int:
        return self._insert("production_costs", asdict(cost))

    def get_production_costs(
        self,
        product_id: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[ProductionCost]:
        sql = "SELECT * FROM production_costs WHERE 1=1"
        params: List[Any] = []
        if product_id is not None:
            sql += " AND product_id = ?"
            params.append(product_id)
        if start_date:
            sql += " AND date >= ?"
            params.append(start_date)
        if end_date:
            sql += " AND date <= ?"
            params.append(end_date)
        sql += " ORDER BY date DESC"

        return [ProductionCost(**dict(row)) for row in self._fetchall(sql, params)]

    def create_transportation_cost(self, cost: TransportationCost) -> int:
        return self._insert("transportation_costs", asdict(cost))

    def get_transportation_costs(self, project_id: Optional[int] = None) -> List[TransportationCost]:
        sql = "SELECT * FROM transportation_costs"
        params: List[Any] = []
        if project_id is not None:
            sql += " WHERE project_id = ?"
            params.append(project_id)
        sql += " ORDER BY date DESC"
        return [TransportationCost(**dict(row)) for row in self._fetchall(sql, params)]

    def create_installation_cost(self, cost: InstallationCost) -> int:
        return self._insert("installation_costs", asdict(cost))

    def get_installation_costs(self, project_id: Optional[int] = None) -> List[InstallationCost]:
        sql = "SELECT * FROM installation_costs"
        params: List[Any] = []
        if project_id is not None:
            sql += " WHERE project_id = ?"
            params.append(project_id)
        sql += " ORDER BY date DESC"
        return [InstallationCost(**dict(row)) for row in self._fetchall(sql, params)]

    # ============ Documents & chunk records ============

    def create_document(self, document: Document) -> int:
        return self._insert("documents", asdict(document))

    def get_document(self, document_id: int) -> Optional[Document]:
        row = self._fetchone("SELECT * FROM documents WHERE id = ?", (document_id,))
        return _document(row) if row else None

    def get_documents_by_project(self, project_id: int) -> List[Document]:
        rows = self._fetchall(
            "SELECT * FROM documents WHERE project_id = ? ORDER BY uploaded_at DESC, id DESC",
            (project_id,),
        )
        return [_document(row) for row in rows]

    def set_document_indexed(self, document_id: int, vector_id: str) -> None:
        """Flag a document as indexed and store its index handle."""
        self._write(
            "UPDATE documents SET vector_indexed = TRUE, vector_id = ? WHERE id = ?",
            (vector_id, document_id),
        )

    def create_vector_metadata(self, record: ChunkRecord) -> int:
        return self._insert("vector_metadata", asdict(record))

    def get_vector_metadata_by_document(self, document_id: int) -> List[ChunkRecord]:
        rows = self._fetchall(
            "SELECT * FROM vector_metadata WHERE document_id = ? ORDER BY chunk_index, id",
            (document_id,),
        )
        return [ChunkRecord(**dict(row)) for row in rows]

    def delete_vector_metadata_by_document(self, document_id: int) -> int:
        """Delete all chunk records for a document. Returns count deleted."""
        return self._write("DELETE FROM vector_metadata WHERE document_id = ?", (document_id,))

    def stats(self) -> Dict[str, int]:
        """Row counts per table."""
        tables = (
            "products", "production_costs", "projects", "transportation_costs",
            "installation_costs", "documents", "vector_metadata",
        )
        return {
            table: self._fetchone(f"SELECT COUNT(*) FROM {table}")[0]
            for table in tables
        }

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self.conn.close()
