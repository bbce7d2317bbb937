"""Tests for the SQLite cost store."""

from concurrent.futures import ThreadPoolExecutor

from costrag.models import (
    ChunkRecord,
    InstallationCost,
    Product,
    ProductionCost,
    Project,
    TransportationCost,
)


def test_production_cost_totals(store):
    product_id = store.create_product(Product(name="Wall panel", category="wall", unit="piece"))
    store.create_production_cost(ProductionCost(
        product_id=product_id, material_cost=6000, labor_cost=1500, overhead_cost=500,
        quantity=4, date="2026-01-10",
    ))

    [cost] = store.get_production_costs()
    assert cost.total_cost == 8000
    assert cost.cost_per_unit == 2000
    assert store.get_product(product_id).name == "Wall panel"


def test_production_cost_filters(store):
    for product_id, date in [(1, "2026-01-01"), (1, "2026-02-01"), (2, "2026-03-01")]:
        store.create_production_cost(ProductionCost(
            product_id=product_id, material_cost=1, labor_cost=1, overhead_cost=1,
            quantity=1, date=date,
        ))

    assert len(store.get_production_costs(product_id=1)) == 2
    assert len(store.get_production_costs(start_date="2026-01-15")) == 2
    assert len(store.get_production_costs(product_id=1, end_date="2026-01-15")) == 1


def test_project_cost_records(store):
    project_id = store.create_project(Project(name="Bangna Tower", total_estimated_cost=50000))
    store.create_transportation_cost(TransportationCost(
        project_id=project_id, distance_km=40, fuel_cost=1200, vehicle_type="trailer",
        driver_cost=800, toll_fees=100, date="2026-02-01",
    ))
    store.create_installation_cost(InstallationCost(
        project_id=project_id, labor_cost=3000, equipment_cost=1000, duration_hours=8,
        crane_cost=2000, date="2026-02-02",
    ))
    store.create_installation_cost(InstallationCost(
        project_id=project_id + 1, labor_cost=1, equipment_cost=1, duration_hours=1,
        date="2026-02-02",
    ))

    [transport] = store.get_transportation_costs(project_id)
    assert transport.total_cost == 2100
    [install] = store.get_installation_costs(project_id)
    assert install.total_cost == 6000
    assert len(store.get_installation_costs()) == 2

    store.update_project_costs(project_id)
    project = store.get_project(project_id)
    assert project.total_actual_cost == 8100
    assert project.total_estimated_cost == 50000


def test_missing_rows(store):
    assert store.get_project(999) is None
    assert store.get_document(999) is None


def test_document_indexing_state(store, make_document):
    document_id = make_document("quote.txt", project_id=3)
    document = store.get_document(document_id)
    assert document.vector_indexed is False
    assert document.vector_id is None

    store.set_document_indexed(document_id, f"doc_{document_id}")
    document = store.get_document(document_id)
    assert document.vector_indexed is True
    assert document.vector_id == f"doc_{document_id}"
    assert [d.id for d in store.get_documents_by_project(3)] == [document_id]


def test_chunk_records(store, make_document):
    document_id = make_document()
    for i in (1, 0):
        store.create_vector_metadata(ChunkRecord(
            document_id=document_id, chunk_index=i, chunk_text=f"chunk {i}",
            vector_id=f"doc_{document_id}_chunk_{i}",
        ))

    records = store.get_vector_metadata_by_document(document_id)
    assert [r.chunk_index for r in records] == [0, 1]

    assert store.delete_vector_metadata_by_document(document_id) == 2
    assert store.get_vector_metadata_by_document(document_id) == []
    assert store.stats()["vector_metadata"] == 0


def test_concurrent_writes_get_distinct_ids(store, make_document):
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda i: make_document(f"quote_{i}.txt", project_id=1), range(40)))

    assert len(set(ids)) == 40
    assert store.stats()["documents"] == 40
    for document_id in (ids[0], ids[-1]):
        assert store.get_document(document_id).filename == f"quote_{ids.index(document_id)}.txt"
