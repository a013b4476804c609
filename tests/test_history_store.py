import json
from datetime import date

import pytest

from pipelines.funding.history import HistoryStore, prune_records


def test_missing_file_loads_empty(tmp_path):
    store = HistoryStore(tmp_path / "history.json")
    assert store.load() == {}


def test_corrupt_file_loads_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text("{not json", encoding="utf-8")

    assert HistoryStore(path).load() == {}


def test_non_object_payload_loads_empty(tmp_path):
    path = tmp_path / "history.json"
    path.write_text('"just a string"', encoding="utf-8")

    assert HistoryStore(path).load() == {}


@pytest.mark.parametrize("entries", [5, "entries", {"company": "Zypp"}])
def test_non_list_entries_load_empty(tmp_path, entries):
    path = tmp_path / "history.json"
    path.write_text(json.dumps({"entries": entries, "last_cleanup": "x"}), encoding="utf-8")

    assert HistoryStore(path).load() == {}


def test_non_object_entry_is_skipped(tmp_path, make_record):
    path = tmp_path / "history.json"
    record = make_record()
    path.write_text(json.dumps({"entries": [7, record.model_dump(mode="json")]}), encoding="utf-8")

    assert list(HistoryStore(path).load()) == [record.key]


def test_save_then_load_preserves_records(tmp_path, make_record):
    path = tmp_path / "nested" / "history.json"
    store = HistoryStore(path)
    record = make_record(investor_names=["Sequoia Capital"], last_updated=date(2024, 1, 5))

    store.save({record.key: record})

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert set(payload) == {"entries", "last_cleanup"}
    assert payload["entries"][0]["company"] == "Zypp"
    assert payload["entries"][0]["investor_names"] == ["Sequoia Capital"]
    assert not (tmp_path / "nested" / "history.json.tmp").exists()
    assert HistoryStore(path).load() == {record.key: record}


def test_load_accepts_legacy_field_names_and_lists(tmp_path):
    path = tmp_path / "history.json"
    entries = [
        {
            "company": "Acme",
            "funding_round": "Series A",
            "funding_news_date": "2024-01-04",
            "investor_name": "Accel, Lightspeed",
            "source": "https://inc42.com/acme",
            "source_priority": 2,
        },
        {"company": "", "funding_news_date": "2024-01-04"},
    ]
    path.write_text(json.dumps(entries), encoding="utf-8")

    records = HistoryStore(path).load()

    assert list(records) == ["acme_series a_2024-01-04"]
    record = records["acme_series a_2024-01-04"]
    assert record.investor_names == ["Accel", "Lightspeed"]
    assert record.source_link == "https://inc42.com/acme"


def test_load_folds_duplicate_keys_by_priority(tmp_path, make_record):
    path = tmp_path / "history.json"
    low = make_record(amount="$3M", source_priority=2, website="https://zypp.app")
    high = make_record(amount="$4M", source_priority=5)
    path.write_text(
        json.dumps({"entries": [low.model_dump(mode="json"), high.model_dump(mode="json")]}),
        encoding="utf-8",
    )

    records = HistoryStore(path).load()

    assert len(records) == 1
    merged = records[high.key]
    assert merged.amount == "$4M"
    assert merged.website == "https://zypp.app"
    assert merged.source_priority == 5


def test_prune_keeps_thirty_days_and_drops_older(make_record):
    as_of = date(2024, 2, 4)
    kept = make_record(company="Kept", funding_news_date=date(2024, 1, 5))
    dropped = make_record(company="Dropped", funding_news_date=date(2024, 1, 4))
    records = {kept.key: kept, dropped.key: dropped}

    assert prune_records(records, as_of=as_of, retention_days=30) == {kept.key: kept}


def test_store_prune_uses_configured_window(tmp_path, make_record):
    store = HistoryStore(tmp_path / "history.json", retention_days=7)
    recent = make_record(funding_news_date=date(2024, 1, 10))
    old = make_record(company="Old", funding_news_date=date(2024, 1, 2))

    kept = store.prune({recent.key: recent, old.key: old}, date(2024, 1, 12))

    assert list(kept) == [recent.key]
    assert store.last_cleanup is not None


def test_retention_must_be_positive(tmp_path):
    with pytest.raises(ValueError):
        HistoryStore(tmp_path / "history.json", retention_days=0)
