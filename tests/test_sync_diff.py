from datetime import date

from pipelines.funding.sync_diff import SHEET_COLUMNS, build_sync_plan, index_snapshot, row_key, to_row


def test_to_row_uses_fixed_column_order(make_record):
    record = make_record(
        website="https://zypp.app",
        linkedin_url="https://linkedin.com/company/zypp",
        amount="$3M",
        investor_names=["Sequoia Capital", "Accel"],
        last_updated=date(2024, 1, 6),
    )

    row = to_row(record)

    assert len(row) == len(SHEET_COLUMNS)
    assert row == [
        "Zypp",
        "https://zypp.app",
        "https://linkedin.com/company/zypp",
        "$3M",
        "Seed",
        "ClimateTech",
        "EV logistics",
        "https://example.com/zypp",
        "Sequoia Capital, Accel",
        "2024-01-05",
        "2024-01-06",
    ]


def test_row_key_matches_record_key(make_record):
    record = make_record(last_updated=date(2024, 1, 6))
    assert row_key(to_row(record)) == record.key


def test_row_key_ignores_short_or_malformed_rows():
    assert row_key(["Zypp", "", ""]) is None
    assert row_key(["Zypp", "", "", "", "Seed", "", "", "", "", "January 5"]) is None
    assert row_key(["", "", "", "", "Seed", "", "", "", "", "2024-01-05"]) is None


def test_index_snapshot_accounts_for_header_and_duplicates(make_record):
    first = to_row(make_record())
    other = to_row(make_record(company="Acme"))

    locations = index_snapshot([first, other, first])

    assert locations == {make_record().key: 2, make_record(company="Acme").key: 3}


def test_build_sync_plan_appends_and_updates(make_record):
    existing = make_record(company="Acme", funding_round="Series A")
    snapshot = [to_row(make_record(company="Other")), to_row(existing)]
    new = make_record(last_updated=date(2024, 1, 6))
    changed = make_record(company="Acme", funding_round="Series A", amount="$10M", last_updated=date(2024, 1, 6))

    plan = build_sync_plan([new], [changed], snapshot)

    assert plan.appends == [to_row(new)]
    assert len(plan.updates) == 1
    assert plan.updates[0].row_number == 3
    assert plan.updates[0].values[3] == "$10M"


def test_updated_record_missing_from_sheet_is_appended(make_record):
    changed = make_record(amount="$3M", last_updated=date(2024, 1, 6))

    plan = build_sync_plan([], [changed], [])

    assert plan.appends == [to_row(changed)]
    assert plan.updates == []


def test_inserted_record_already_in_sheet_becomes_update(make_record):
    record = make_record(last_updated=date(2024, 1, 6))

    plan = build_sync_plan([record], [], [to_row(make_record())])

    assert plan.appends == []
    assert plan.updates[0].row_number == 2


def test_empty_plan_payload(make_record):
    plan = build_sync_plan([], [], [to_row(make_record())])

    assert plan.empty
    assert plan.to_payload() == {"columns": list(SHEET_COLUMNS), "appends": [], "updates": []}


def test_rekeyed_record_updates_its_previous_row(make_record):
    stored = make_record(funding_round="Unknown")
    filled = make_record(funding_round="Seed", last_updated=date(2024, 1, 6))

    plan = build_sync_plan(
        [],
        [filled],
        [to_row(make_record(company="Acme")), to_row(stored)],
        previous_keys={filled.key: stored.key},
    )

    assert plan.appends == []
    assert plan.updates[0].row_number == 3
    assert plan.updates[0].values[4] == "Seed"
