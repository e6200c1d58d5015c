"""
Tests for the Extraction, Deal and Correction Stores
"""

import pytest

from rune.errors import NotFoundError
from rune.mapper import map_extraction
from rune.models import Deal, DealStage, Totals
from rune.stores import CorrectionLog, DealStore, ExtractionStore

from conftest import make_extraction


def make_deal(deal_id="deal_abc123", dqi=70):
    return Deal(
        id=deal_id,
        name="Test Deal",
        stage=DealStage.DRAFT,
        dqi=dqi,
        target=0.0,
        progress=0,
        doc_id="doc_test01",
        mapped=map_extraction(make_extraction()),
    )


class TestExtractionStore:

    def test_put_then_get(self):
        store = ExtractionStore()
        extraction = make_extraction("doc_1")
        store.put("doc_1", extraction)
        assert store.get("doc_1") is extraction
        assert store.contains("doc_1")
        assert store.count() == 1

    def test_write_once(self):
        store = ExtractionStore()
        store.put("doc_1", make_extraction("doc_1"))
        with pytest.raises(ValueError):
            store.put("doc_1", make_extraction("doc_1", totals=Totals(noi=1)))
        assert store.get("doc_1").totals.noi is None

    def test_missing_raises_not_found(self):
        store = ExtractionStore()
        with pytest.raises(NotFoundError):
            store.get("doc_missing")
        assert store.find("doc_missing") is None

    def test_extraction_is_immutable(self):
        extraction = make_extraction()
        with pytest.raises(AttributeError):
            extraction.totals = Totals(noi=5)

    def test_list_all_in_insertion_order(self):
        store = ExtractionStore()
        for i in range(3):
            store.put(f"doc_{i}", make_extraction(f"doc_{i}"))
        assert [e.doc_id for e in store.list_all()] == ["doc_0", "doc_1", "doc_2"]


class TestDealStore:

    def test_put_overwrites(self):
        store = DealStore()
        store.put(make_deal(dqi=60))
        store.put(make_deal(dqi=80))
        assert store.count() == 1
        assert store.get("deal_abc123").dqi == 80

    def test_missing_raises_not_found(self):
        with pytest.raises(NotFoundError) as exc_info:
            DealStore().get("deal_missing")
        assert str(exc_info.value) == "Deal not found: deal_missing"

    def test_deal_to_dict(self):
        data = make_deal().to_dict()
        assert data["stage"] == "Draft"
        assert data["docId"] == "doc_test01"
        assert data["progress"] == 0


class TestCorrectionLog:

    def test_append_and_list(self):
        log = CorrectionLog()
        first = log.add("doc_1", "totals.noi", 750000, note="Per lender package")
        log.add("doc_1", "rentRoll.0.base_rent", 3600)
        log.add("doc_2", "totals.egi", 1)

        records = log.list_for("doc_1")
        assert [r.path for r in records] == ["totals.noi", "rentRoll.0.base_rent"]
        assert first.correction_id.startswith("corr_")
        assert log.count() == 3

    def test_unknown_doc_is_empty(self):
        assert CorrectionLog().list_for("doc_none") == []
