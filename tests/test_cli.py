import json

import pytest

import cli
import config
from schemas import DeliveryPersonnel, GPSLocation
from stores import AUTH_KEY


@pytest.fixture
def auth_file(tmp_path, monkeypatch):
    path = tmp_path / "auth.json"
    monkeypatch.setattr(config, "AUTH_STORAGE_PATH", str(path))
    return path


def test_logout_forgets_saved_session(auth_file, capsys):
    auth_file.write_text(json.dumps({AUTH_KEY: {"user": None, "token": "tok"}}))
    assert cli.main(["logout"]) == 0
    assert AUTH_KEY not in json.loads(auth_file.read_text())
    assert "Signed out" in capsys.readouterr().out


def test_cart_needs_login(auth_file, capsys):
    assert cli.main(["cart"]) == 1
    assert "Please login first" in capsys.readouterr().out


def test_track_needs_login(auth_file, capsys):
    assert cli.main(["track", "o1"]) == 1
    assert "Please login first" in capsys.readouterr().out


def test_unknown_command_exits():
    with pytest.raises(SystemExit):
        cli.main(["refund"])


def test_notifications_need_login(auth_file, capsys):
    assert cli.main(["notifications", "--unread"]) == 1
    assert "Please login first" in capsys.readouterr().out


def test_delivery_printout_formats_courier_phone(capsys):
    cli.print_delivery({
        "current_location": GPSLocation(latitude=27.7172, longitude=85.324),
        "delivery_personnel": DeliveryPersonnel(name="Ram", phone="9800000000"),
    })
    out = capsys.readouterr().out.splitlines()
    assert out == ["Location 27.71720, 85.32400", "Courier Ram 980-000-0000"]


def test_delivery_printout_skips_missing_fields(capsys):
    cli.print_delivery({"current_location": None, "delivery_personnel": None})
    assert capsys.readouterr().out == ""
