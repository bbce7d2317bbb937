"""Data models for the costrag engine."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def vector_key(document_id: int, chunk_index: int) -> str:
    """Deterministic vector index key for a document chunk."""
    return f"doc_{document_id}_chunk_{chunk_index}"


def document_handle(document_id: int) -> str:
    """Index handle stored on a document once it has been indexed."""
    return f"doc_{document_id}"


# ============ Relational records ============

@dataclass
class Product:
    """A precast product line."""
    name: str
    category: str
    unit: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class Project:
    """A customer project that transportation and installation costs are booked against."""
    name: str
    location: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    status: str = "active"
    total_estimated_cost: Optional[float] = None
    total_actual_cost: Optional[float] = None
    id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass
class ProductionCost:
    """Production cost of one batch of a product."""
    product_id: int
    material_cost: float
    labor_cost: float
    overhead_cost: float
    quantity: int
    date: str
    notes: Optional[str] = None
    total_cost: float = 0.0
    cost_per_unit: float = 0.0
    id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        if not self.total_cost:
            self.total_cost = self.material_cost + self.labor_cost + self.overhead_cost
        if not self.cost_per_unit and self.quantity:
            self.cost_per_unit = self.total_cost / self.quantity


@dataclass
class TransportationCost:
    """Transportation cost of one delivery for a project."""
    project_id: int
    distance_km: float
    fuel_cost: float
    vehicle_type: str
    driver_cost: float
    date: str
    toll_fees: float = 0.0
    notes: Optional[str] = None
    total_cost: float = 0.0
    id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        if not self.total_cost:
            self.total_cost = self.fuel_cost + self.driver_cost + (self.toll_fees or 0.0)


@dataclass
class InstallationCost:
    """Installation cost of one site job for a project."""
    project_id: int
    labor_cost: float
    equipment_cost: float
    duration_hours: float
    date: str
    crane_cost: float = 0.0
    notes: Optional[str] = None
    total_cost: float = 0.0
    id: Optional[int] = None
    created_at: Optional[str] = None

    def __post_init__(self):
        if not self.total_cost:
            self.total_cost = self.labor_cost + self.equipment_cost + (self.crane_cost or 0.0)


@dataclass
class Document:
    """An uploaded document and its indexing state."""
    filename: str
    file_path: str
    file_type: str
    project_id: Optional[int] = None
    file_size: Optional[int] = None
    uploaded_at: Optional[str] = None
    vector_indexed: bool = False
    vector_id: Optional[str] = None
    id: Optional[int] = None


@dataclass
class ChunkRecord:
    """Relational record of one indexed chunk."""
    document_id: int
    chunk_index: int
    chunk_text: str
    vector_id: str
    id: Optional[int] = None
    created_at: Optional[str] = None


# ============ Vector index ============

@dataclass
class VectorEntry:
    """A (key, embedding, metadata) triple stored in the vector index."""
    key: str
    embedding: List[float]
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VectorMatch:
    """A single nearest-neighbour hit."""
    key: str
    score: float  # cosine similarity, higher is better
    metadata: Dict[str, Any] = field(default_factory=dict)


# ============ Query results ============

@dataclass
class Source:
    """A document chunk that grounded an answer."""
    document: str
    relevance: float
    chunk_text: Optional[str] = None
    document_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document": self.document,
            "relevance": self.relevance,
            "chunk_text": self.chunk_text,
        }


@dataclass
class CostBreakdown:
    """Material/labor/overhead/total figures pulled out of a generated answer."""
    material: Optional[float] = None
    labor: Optional[float] = None
    overhead: Optional[float] = None
    total: Optional[float] = None

    def as_dict(self) -> Dict[str, float]:
        """Only the fields that were actually found."""
        return {
            name: value
            for name, value in (
                ("material", self.material),
                ("labor", self.labor),
                ("overhead", self.overhead),
                ("total", self.total),
            )
            if value is not None
        }

    def is_empty(self) -> bool:
        return not self.as_dict()


@dataclass
class QueryResult:
    """Answer to a natural-language cost question."""
    answer: str
    sources: List[Source] = field(default_factory=list)
    cost_breakdown: Optional[CostBreakdown] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
        }
        if self.cost_breakdown is not None:
            data["cost_breakdown"] = self.cost_breakdown.as_dict()
        return data
