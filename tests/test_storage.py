import io
import json
import logging
import openpyxl
import pandas as pd
import pytest
from tallybook.export import CSV_COLUMNS, export_csv, export_xlsx
from tallybook.models import Credit, Expense, SplitRoom
from tallybook.storage import GoogleSheetsBackend, LocalJsonStore, empty_state


def test_local_store_missing_file_is_empty(tmp_path):
    store = LocalJsonStore(str(tmp_path / "nothing.json"))
    assert store.load_state() == empty_state()


def test_local_store_round_trip(tmp_path):
    store = LocalJsonStore(str(tmp_path / "nested" / "data.json"))
    state = empty_state()
    state["expenses"].append(Expense(title="Dinner", amount=12.5, date="2026-01-01").to_dict())
    store.save_state(state)
    assert store.load_state() == state
    # no temp files left behind
    assert [p.name for p in (tmp_path / "nested").iterdir()] == ["data.json"]


def test_local_store_ignores_unknown_keys(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"next_id": 4, "expenses": [{"title": "Old"}]}), encoding="utf-8")
    state = LocalJsonStore(str(path)).load_state()
    assert set(state) == {"expenses", "credits", "wishlist", "rooms"}
    assert Expense.from_dict(state["expenses"][0]).title == "Old"


def test_sheets_backend_unavailable_without_sheet_id(monkeypatch):
    monkeypatch.delenv("GOOGLE_SHEET_ID", raising=False)
    backend = GoogleSheetsBackend()
    assert backend.available is False
    assert backend.reason == "GOOGLE_SHEET_ID is not set"
    assert backend.save_state(empty_state()) is False
    assert backend.load_state() == {}


def test_sheet_rows_round_trip_a_room():
    room = SplitRoom(name="Trip")
    room.add_member("A")
    room.add_member("B")
    room.add_expense("Hotel", 80.0, "A", ["A", "B"], date="2026-03-01")
    headers = GoogleSheetsBackend.SHEETS["rooms"]
    row = GoogleSheetsBackend.dict_to_row(headers, room.to_dict())
    restored = SplitRoom.from_dict(GoogleSheetsBackend.record_to_dict(dict(zip(headers, row))))
    assert restored.to_dict() == room.to_dict()


def test_sheet_record_parsing_is_tolerant():
    record = {"id": "x1", "title": " Lamp ", "price": "abc", "is_purchased": "TRUE", "target_date": ""}
    parsed = GoogleSheetsBackend.record_to_dict(record)
    assert parsed == {"id": "x1", "title": "Lamp", "price": 0.0, "is_purchased": True, "target_date": ""}



class FakeWorksheet:
    def __init__(self):
        self.row_count = 1
        self.col_count = 1
        self.values = []

    def row_values(self, index):
        return self.values[index - 1] if len(self.values) >= index else []

    def resize(self, rows, cols):
        self.row_count, self.col_count = rows, cols

    def clear(self):
        self.values = []

    def update(self, range_name, values, value_input_option):
        assert range_name == "A1"
        self.values = [list(v) for v in values] + self.values[len(values):]


@pytest.fixture
def sheets_backend(monkeypatch):
    monkeypatch.delenv("GOOGLE_SHEET_ID", raising=False)
    backend = GoogleSheetsBackend()
    backend.available = True
    backend._worksheets = {title: FakeWorksheet() for title in GoogleSheetsBackend.SHEETS}
    return backend


def test_sheets_save_writes_one_row_per_record(sheets_backend):
    room = SplitRoom(name="Trip")
    room.add_member("A")
    state = empty_state()
    state["rooms"].append(room.to_dict())
    assert sheets_backend.save_state(state) is True
    rows = sheets_backend._worksheets["rooms"].values
    assert rows[0] == GoogleSheetsBackend.SHEETS["rooms"]
    assert rows[1][:2] == [room.id, "Trip"]


def test_oversized_cells():
    headers = GoogleSheetsBackend.SHEETS["rooms"]
    room = SplitRoom(name="Trip")
    room.add_member("A")
    assert GoogleSheetsBackend.oversized_cells(headers, GoogleSheetsBackend.dict_to_row(headers, room.to_dict())) == []
    room.add_expense("Hotel", 80.0, "A", ["A"], notes="x" * GoogleSheetsBackend.CELL_LIMIT)
    cells = GoogleSheetsBackend.oversized_cells(headers, GoogleSheetsBackend.dict_to_row(headers, room.to_dict()))
    assert [h for h, _ in cells] == ["expenses_json"]
    assert cells[0][1] > GoogleSheetsBackend.CELL_LIMIT


def test_sheets_save_refuses_oversized_room(sheets_backend, caplog):
    sheets_backend._worksheets["expenses"].values = [["kept"]]
    room = SplitRoom(name="Trip")
    room.add_member("A")
    room.add_expense("Hotel", 80.0, "A", ["A"], notes="x" * GoogleSheetsBackend.CELL_LIMIT)
    state = empty_state()
    state["rooms"].append(room.to_dict())
    with caplog.at_level(logging.WARNING, logger="tallybook.storage"):
        assert sheets_backend.save_state(state) is False
    # nothing was cleared or rewritten
    assert sheets_backend._worksheets["expenses"].values == [["kept"]]
    assert sheets_backend._worksheets["rooms"].values == []
    assert room.id in caplog.text
    assert "expenses_json" in caplog.text

def test_export_csv_layout():
    expenses = [
        Expense(title="Old", amount=5.0, category="Food", date="2026-01-01"),
        Expense(title="New", amount=7.25, category="Travel", date="2026-02-01", notes="bus, late"),
    ]
    credits = [Credit(title="Pay", amount=100.0, source="Salary", date="2026-01-15")]
    df = pd.read_csv(io.StringIO(export_csv(expenses, credits)), keep_default_na=False)
    assert list(df.columns) == CSV_COLUMNS
    assert list(df["Title"]) == ["New", "Old", "Pay"]
    assert list(df["Type"]) == ["Expense", "Expense", "Credit"]
    assert df["Notes"][0] == "bus, late"


def test_export_csv_empty_has_header():
    assert export_csv([], []).strip() == ",".join(CSV_COLUMNS)


def test_export_xlsx_sheets():
    data = export_xlsx([Expense(title="A", amount=2.0, category="Food", date="2026-01-01")], [])
    wb = openpyxl.load_workbook(io.BytesIO(data))
    assert wb.sheetnames == ["transactions", "totals"]
