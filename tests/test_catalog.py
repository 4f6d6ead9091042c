"""Catalog providers, index helpers and the bulk importer."""

import json
from unittest.mock import MagicMock, patch

import pytest
from elasticsearch import NotFoundError, TransportError

from cura.catalog import ElasticsearchCatalog, InMemoryCatalog, load_products
from cura.config import Settings
from cura.importer import import_if_empty, import_products, reindex_data
from cura.indexing import drop_index, ensure_index, index_is_empty


def _not_found() -> NotFoundError:
    return NotFoundError("index_not_found_exception", MagicMock(status=404), {})


def test_in_memory_catalog_matches_any_text_field(pharmacy_products):
    catalog = InMemoryCatalog(pharmacy_products)

    assert {p.id for p in catalog.search_products("PARACETAMOL")} == {"1", "2"}
    assert {p.id for p in catalog.search_products("antibiotic")} == {"4"}
    assert {p.id for p in catalog.search_products("Wellness")} == {"2", "3", "4", "5", "6"}
    assert {p.id for p in catalog.search_products("باراسيتامول")} == {"1"}
    assert catalog.search_products("nothing-like-this") == []


def test_in_memory_catalog_empty_query_returns_everything(pharmacy_products):
    catalog = InMemoryCatalog(pharmacy_products)

    assert len(catalog.search_products("  ")) == len(pharmacy_products)


def test_in_memory_catalog_location_scope(pharmacy_products):
    catalog = InMemoryCatalog(pharmacy_products)

    assert {p.id for p in catalog.products_in_locations(["giza-city", "ismailia-city"])} == {"2", "4"}
    assert len(catalog.products_in_locations([])) == len(pharmacy_products)


def test_load_products_reads_camel_case_json(tmp_path):
    path = tmp_path / "products.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": 7,
                    "name": "Cough Syrup",
                    "nameAr": "شراب للكحة",
                    "category": "otc",
                    "price": 35,
                    "pharmacyId": "newlife-giza",
                    "cityId": "giza-city",
                    "inStock": False,
                    "activeIngredient": "dextromethorphan",
                }
            ]
        ),
        encoding="utf-8",
    )

    catalog = InMemoryCatalog.from_file(path)

    product = catalog.products[0]
    assert product.id == "7"
    assert product.name_ar == "شراب للكحة"
    assert product.in_stock is False
    assert [p.id for p in catalog.search_products("dextro")] == ["7"]


def test_load_products_missing_file_is_empty(tmp_path):
    assert load_products(tmp_path / "absent.json") == []


def test_elasticsearch_catalog_builds_phrase_prefix_query():
    es = MagicMock()
    es.search.return_value = {
        "hits": {"hits": [{"_source": {"id": "1", "name": "Paracetamol", "category": "otc", "price": 25}}]}
    }
    catalog = ElasticsearchCatalog(es, "cura-products", size=50)

    products = catalog.search_products("  Paracet ")

    assert [p.name for p in products] == ["Paracetamol"]
    kwargs = es.search.call_args.kwargs
    assert kwargs["index"] == "cura-products"
    body = kwargs["body"]
    assert body["size"] == 50
    multi_match = body["query"]["bool"]["must"][0]["multi_match"]
    assert multi_match["query"] == "paracet"
    assert multi_match["type"] == "phrase_prefix"
    assert "nameAr^3" in multi_match["fields"]


def test_elasticsearch_catalog_filters_by_city():
    es = MagicMock()
    es.search.return_value = {"hits": {"hits": []}}
    catalog = ElasticsearchCatalog(es, "cura-products")

    assert catalog.products_in_locations(["cairo-city"]) == []

    bool_clause = es.search.call_args.kwargs["body"]["query"]["bool"]
    assert bool_clause["must"] == [{"match_all": {}}]
    assert bool_clause["filter"] == [{"terms": {"cityId": ["cairo-city"]}}]


def test_elasticsearch_catalog_degrades_to_empty_on_errors():
    es = MagicMock()
    es.search.side_effect = TransportError("connection refused")
    catalog = ElasticsearchCatalog(es, "cura-products")

    assert catalog.search_products("vitamin") == []


def test_ensure_index_creates_missing_index(tmp_path):
    mapping = tmp_path / "mapping.json"
    mapping.write_text(json.dumps({"mappings": {"properties": {}}}), encoding="utf-8")
    es = MagicMock()
    es.indices.exists.return_value = False

    assert ensure_index(es, "cura-products", mapping) is True
    es.indices.create.assert_called_once_with(index="cura-products", body={"mappings": {"properties": {}}})


def test_ensure_index_skips_existing_index(tmp_path):
    es = MagicMock()
    es.indices.exists.return_value = True

    assert ensure_index(es, "cura-products", tmp_path / "unused.json") is False
    es.indices.create.assert_not_called()


def test_drop_and_empty_checks_tolerate_missing_index():
    es = MagicMock()
    es.indices.delete.side_effect = _not_found()
    es.count.side_effect = _not_found()

    drop_index(es, "cura-products")
    assert index_is_empty(es, "cura-products") is True


def test_index_is_empty_reads_document_count():
    es = MagicMock()
    es.count.return_value = {"count": 3}

    assert index_is_empty(es, "cura-products") is False


@pytest.fixture
def products_file(tmp_path, product_factory):
    path = tmp_path / "products.json"
    products = [product_factory(id="1", name="Zinc"), product_factory(id="2", name="Iron")]
    path.write_text(json.dumps([p.model_dump(mode="json", by_alias=True) for p in products]), encoding="utf-8")
    return path


def test_import_products_bulk_indexes_camel_case_documents(products_file):
    es = MagicMock()
    settings = Settings(catalog_path=str(products_file), es_index="test-products")

    with patch("cura.importer.helpers.bulk") as bulk:
        assert import_products(es, settings) == 2

    actions = bulk.call_args.args[1]
    assert [action["_id"] for action in actions] == ["1", "2"]
    assert actions[0]["_index"] == "test-products"
    assert actions[0]["_source"]["pharmacyId"] == "wellness-cairo"


def test_import_if_empty_skips_populated_index(products_file):
    es = MagicMock()
    es.count.return_value = {"count": 10}
    settings = Settings(catalog_path=str(products_file))

    with patch("cura.importer.helpers.bulk") as bulk:
        assert import_if_empty(es, settings) == 0

    bulk.assert_not_called()


def test_reindex_drops_recreates_and_loads(products_file, tmp_path):
    mapping = tmp_path / "mapping.json"
    mapping.write_text("{}", encoding="utf-8")
    es = MagicMock()
    es.indices.exists.return_value = False
    settings = Settings(catalog_path=str(products_file), es_index="test-products", mapping_path=str(mapping))

    with patch("cura.importer.helpers.bulk"):
        assert reindex_data(es, settings) == 2

    es.indices.delete.assert_called_once_with(index="test-products")
    es.indices.create.assert_called_once()
