import datetime
import json
import pytest
from tallybook.tracker import FinanceTracker
from tallybook.settlement import Settlement, SplitMode


@pytest.fixture
def data_file(tmp_path):
    return str(tmp_path / "tallybook_data.json")


@pytest.fixture
def tracker(data_file):
    return FinanceTracker(data_file=data_file, use_google_sheets=False)


def test_add_expense(tracker):
    initial_count = len(tracker.expenses)
    tracker.add_expense("Dinner", 100.0, "Food", "2026-01-05", "birthday")
    assert len(tracker.expenses) == initial_count + 1
    assert tracker.expenses[-1].amount == 100.0
    assert tracker.expenses[-1].category == "Food"
    assert tracker.expenses[-1].date == "2026-01-05"


def test_add_expense_defaults_to_today(tracker):
    exp = tracker.add_expense("Coffee", 3.5)
    assert exp.date == datetime.date.today().isoformat()


def test_add_expense_rejects_bad_date(tracker):
    with pytest.raises(ValueError):
        tracker.add_expense("Coffee", 3.5, date="05/01/2026")
    assert tracker.expenses == []


def test_edit_and_delete_expense(tracker):
    exp = tracker.add_expense("Taxi", 20.0, "Travel", "2026-01-05")
    updated = tracker.edit_expense(exp.id, amount=25.0, notes="airport")
    assert updated.amount == 25.0
    assert updated.notes == "airport"
    assert tracker.edit_expense("missing", amount=1.0) is None
    assert tracker.delete_expense(exp.id) is True
    assert tracker.delete_expense(exp.id) is False
    assert tracker.expenses == []


def test_failed_edit_leaves_expense_unchanged(tracker, data_file):
    exp = tracker.add_expense("Taxi", 20.0, "Travel", "2026-01-05")
    with pytest.raises(ValueError):
        tracker.edit_expense(exp.id, amount=999.0, date="05/01/2026")
    assert exp.amount == 20.0
    assert exp.date == "2026-01-05"
    # the next save must not persist the rejected edit
    tracker.add_expense("Coffee", 3.5, date="2026-01-06")
    reloaded = FinanceTracker(data_file=data_file, use_google_sheets=False)
    assert [(e.title, e.amount, e.date) for e in reloaded.expenses] == [
        ("Taxi", 20.0, "2026-01-05"),
        ("Coffee", 3.5, "2026-01-06"),
    ]


def test_edit_expense_normalizes_date(tracker):
    exp = tracker.add_expense("Taxi", 20.0, "Travel", "2026-01-05")
    updated = tracker.edit_expense(exp.id, date=datetime.date(2026, 2, 1))
    assert updated.date == "2026-02-01"


def test_list_expenses_by_period(tracker):
    tracker.add_expense("A", 1.0, date="2025-12-31")
    tracker.add_expense("B", 2.0, date="2026-01-02")
    tracker.add_expense("C", 3.0, date="2026-02-02")
    assert [e.title for e in tracker.list_expenses(year=2026)] == ["B", "C"]
    assert [e.title for e in tracker.list_expenses(year=2026, month=2)] == ["C"]
    years, months = tracker.available_periods()
    assert years == [2025, 2026]
    assert months[2026] == [1, 2]


def test_credits_and_wishlist(tracker):
    credit = tracker.add_credit("Salary", 3000.0, "Salary", "2026-01-01")
    assert tracker.edit_credit(credit.id, amount=3100.0).amount == 3100.0
    item = tracker.add_wishlist_item("Headphones", 199.0, priority="High")
    assert tracker.set_purchased(item.id).is_purchased is True
    assert tracker.edit_wishlist_item(item.id, price=179.0, priority="Low").price == 179.0
    with pytest.raises(ValueError):
        tracker.edit_wishlist_item(item.id, priority="Someday")
    with pytest.raises(ValueError):
        tracker.add_wishlist_item("Yacht", 1e6, priority="Urgent")
    assert tracker.delete_credit(credit.id) is True
    assert tracker.delete_wishlist_item(item.id) is True


def test_edit_wishlist_item_rejects_bad_target_date(tracker):
    item = tracker.add_wishlist_item("Bike", 400.0, priority="Medium")
    with pytest.raises(ValueError):
        tracker.edit_wishlist_item(item.id, price=1.0, target_date="next spring")
    assert item.price == 400.0
    assert item.target_date is None
    assert tracker.edit_wishlist_item(item.id, target_date="2026-06-01").target_date == "2026-06-01"
    assert tracker.edit_wishlist_item(item.id, target_date=None).target_date is None


def test_split_room_flow(tracker):
    room = tracker.create_room("Trip", ["A", "B", "C"])
    tracker.add_split_expense(room.id, "Hotel", 90.0, "A", ["A", "B", "C"], date="2026-03-01")
    tracker.add_split_expense(room.id, "Food", 30.0, "B", ["A", "B", "C"], date="2026-03-02")
    assert tracker.room_balances(room.id) == pytest.approx({"A": 50.0, "B": -10.0, "C": -40.0})
    assert tracker.room_settlements(room.id) == [
        Settlement("C", "A", pytest.approx(40.0)),
        Settlement("B", "A", pytest.approx(10.0)),
    ]


def test_split_room_per_expense_mode(tracker):
    room = tracker.create_room("Flat", ["A", "B", "C"])
    tracker.add_split_expense(room.id, "Taxi", 30.0, "A", ["A", "B"])
    assert tracker.room_settlements(room.id, SplitMode.PER_EXPENSE) == [Settlement("B", "A", 15.0)]


def test_create_room_validates_names(tracker):
    with pytest.raises(ValueError):
        tracker.create_room("  ", ["A"])
    with pytest.raises(ValueError):
        tracker.create_room("Trip", ["A", "A"])
    assert tracker.rooms == []


def test_create_room_rejects_duplicate_name(tracker):
    first = tracker.create_room("Trip", ["A", "B"])
    with pytest.raises(ValueError):
        tracker.create_room(" Trip ", ["A", "B"])
    assert [r.id for r in tracker.rooms] == [first.id]
    assert tracker.create_room("Trip 2", ["A", "B"]).name == "Trip 2"


def test_unknown_room_raises(tracker):
    with pytest.raises(KeyError):
        tracker.room_balances("nope")


def test_remove_room_member(tracker):
    room = tracker.create_room("Trip", ["A", "B"])
    tracker.add_split_expense(room.id, "Hotel", 50.0, "B", ["A", "B"])
    assert tracker.remove_room_member(room.id, "B", cascade=True) is True
    assert tracker.get_room(room.id).expenses == []
    assert tracker.remove_room_member(room.id, "B") is False


def test_delete_split_expense(tracker):
    room = tracker.create_room("Trip", ["A", "B"])
    expense = tracker.add_split_expense(room.id, "Hotel", 50.0, "B", ["A", "B"])
    assert tracker.delete_split_expense(room.id, expense.id) is True
    assert tracker.delete_split_expense(room.id, expense.id) is False
    assert tracker.room_settlements(room.id) == []


def test_clear(tracker):
    tracker.add_expense("Dinner", 100.0)
    tracker.create_room("Trip", ["A"])
    tracker.clear()
    assert tracker.expenses == []
    assert tracker.rooms == []


def test_load_saved_state(tracker, data_file):
    tracker.add_expense("Dinner", 100.0, "Food", "2026-01-05")
    room = tracker.create_room("Trip", ["A", "B"])
    tracker.add_split_expense(room.id, "Hotel", 80.0, "A", ["A", "B"])
    new_tracker = FinanceTracker(data_file=data_file, use_google_sheets=False)
    assert len(new_tracker.expenses) == 1
    assert new_tracker.expenses[0].amount == 100.0
    assert new_tracker.get_room(room.id).balances() == {"A": 40.0, "B": -40.0}
    with open(data_file, encoding="utf-8") as f:
        saved = json.load(f)
    assert set(saved) == {"expenses", "credits", "wishlist", "rooms"}


def test_storage_status_without_sheets(tracker):
    backend, message = tracker.storage_status()
    assert backend == "local_json"
    assert "local file" in message


def test_export_csv_from_tracker(tracker):
    tracker.add_expense("Dinner", 100.0, "Food", "2026-01-05")
    lines = tracker.export_csv().splitlines()
    assert lines[0] == "Type,Date,Title,Category/Source,Amount,Notes"
    assert lines[1].startswith("Expense,2026-01-05,Dinner,Food,100.0")
