import pytest

from rental_cli.cli import main
from rental_core.services import PropertyService
from rental_core.storage import JSONStorage
from rental_core.store import RecordStore


@pytest.fixture
def data_dir(tmp_path, property_payload):
    path = tmp_path / "data"
    PropertyService(RecordStore(JSONStorage(path))).add(property_payload)
    return path


def _run(data_dir, *args):
    return main(["--data-dir", str(data_dir), *args])


def test_booking_add_list_and_conflict(data_dir, capsys):
    assert _run(data_dir, "booking", "add", "1", "21", "2030-06-10", "2030-06-15") == 0
    assert "Booking saved" in capsys.readouterr().out

    assert _run(data_dir, "booking", "add", "1", "22", "2030-06-12", "2030-06-20") == 1
    assert "Conflict" in capsys.readouterr().err

    assert _run(data_dir, "booking", "list", "--property", "1") == 0
    assert "Found 1 bookings" in capsys.readouterr().out


def test_check_cancel_and_delete(data_dir, capsys):
    _run(data_dir, "booking", "add", "1", "21", "2030-06-10", "2030-06-15")
    capsys.readouterr()

    _run(data_dir, "booking", "check", "1", "2030-06-11", "2030-06-12")
    assert "already booked" in capsys.readouterr().out

    assert _run(data_dir, "booking", "cancel", "1") == 0
    _run(data_dir, "booking", "check", "1", "2030-06-11", "2030-06-12")
    assert capsys.readouterr().out.strip().endswith("Available")

    _run(data_dir, "booking", "delete", "1")
    assert "deleted" in capsys.readouterr().out
    _run(data_dir, "booking", "delete", "1")
    assert "nothing deleted" in capsys.readouterr().out


def test_show_missing_record_fails(data_dir, capsys):
    assert _run(data_dir, "show", "bookings", "9") == 1
    assert capsys.readouterr().err


def test_list_properties_and_revenue(data_dir, capsys):
    assert _run(data_dir, "list", "properties") == 0
    assert "Lake House" in capsys.readouterr().out

    _run(data_dir, "booking", "add", "1", "21", "2030-06-10", "2030-06-12")
    capsys.readouterr()
    assert _run(data_dir, "revenue", "7") == 0
    assert "3000" in capsys.readouterr().out


def test_cleanup_reports_removed_temp_files(data_dir, capsys):
    (data_dir / ".bookings.json.abc.tmp").write_text("{", encoding="utf-8")

    assert _run(data_dir, "cleanup") == 0
    assert "Removed 1 temporary file(s)." in capsys.readouterr().out


def test_invalid_date_is_rejected_by_the_parser(data_dir):
    with pytest.raises(SystemExit):
        _run(data_dir, "booking", "add", "1", "21", "10/06/2030", "2030-06-15")
