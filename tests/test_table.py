import pytest

from conftest import make_school
from udise_dashboard.table import TABLE_COLUMNS, RowAction, VirtualWindow, records_frame, row_action


def test_records_frame_layout():
    schools = [make_school("s1"), make_school("s2", total_students=None)]

    frame = records_frame(schools)

    assert list(frame.columns) == TABLE_COLUMNS
    assert list(frame.index) == ["s1", "s2"]
    assert frame.loc["s1", "Village / Block"] == "Khagaul, Danapur"
    assert frame.loc["s1", "District / State"] == "Patna, Bihar"
    assert frame.loc["s1", "Students"] == "120"
    assert frame.loc["s2", "Students"] == "N/A"


def test_records_frame_empty():
    frame = records_frame([])

    assert frame.empty
    assert list(frame.columns) == TABLE_COLUMNS


def test_row_action_targets_selected_school():
    schools = [make_school("s1"), make_school("s2")]

    action = row_action("edit", schools, 1)

    assert action == RowAction("edit", schools[1])
    assert row_action("view", schools, None) is None
    assert row_action("view", schools, 5) is None
    with pytest.raises(ValueError):
        RowAction("archive", schools[0])


def test_virtual_window_at_top():
    window = VirtualWindow(1000)

    assert window.visible_count == 10
    assert window.total_height == 60000
    assert window.slice(0) == (0, 11)


def test_virtual_window_mid_scroll():
    window = VirtualWindow(1000)

    assert window.slice(3000) == (50, 61)
    assert window.slice(3059) == (50, 61)
    assert window.offset_of(50) == 3000


def test_virtual_window_clamps_scroll():
    window = VirtualWindow(1000)

    assert window.max_scroll == 59400
    assert window.slice(10 ** 9) == (990, 1000)
    assert window.slice(-100) == (0, 11)


def test_virtual_window_short_list():
    window = VirtualWindow(3)

    assert window.max_scroll == 0
    assert window.slice(500) == (0, 3)
    assert window.rows(["a", "b", "c"], 0) == ["a", "b", "c"]
    assert VirtualWindow(0).slice(0) == (0, 0)


def test_virtual_window_rejects_bad_geometry():
    with pytest.raises(ValueError):
        VirtualWindow(10, row_height=0)
