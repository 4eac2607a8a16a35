"""
Tests for YAML configuration loading.
"""

from datetime import date, time
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from booking_engine.adapters.memory_store import ConfigResourceStore
from booking_engine.config import AppConfig, DayHoursConfig, ResourceConfig

CONFIG_YAML = """
timezone: Europe/Paris
database_url: "sqlite:///:memory:"
log_level: info
defaults:
  slot_granularity_minutes: 30
resources:
  - id: room-a
    name: Meeting Room A
    capacity: 6
    price_per_hour: 12.5
    price_per_day: 90
    opening_hours:
      monday: {open: "09:00", close: "18:00"}
      tuesday: {open: 10:00, close: 16:30}
      saturday: {closed: true}
  - id: studio
    name: Studio
    day_threshold_hours: 8
    opening_hours:
      2: {open: "08:00", close: "20:00"}
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_load_from_yaml(config_file):
    config = AppConfig.load_from_yaml(config_file)

    assert config.timezone == "Europe/Paris"
    assert config.log_level == "INFO"
    assert config.defaults.slot_granularity_minutes == 30
    assert config.defaults.reprice_tolerance_hours == 0.5
    assert [r.id for r in config.resources] == ["room-a", "studio"]
    assert config.find_resource("studio").day_threshold_hours == 8
    assert config.find_resource("missing") is None


def test_unquoted_yaml_times_are_accepted(config_file):
    config = AppConfig.load_from_yaml(config_file)
    tuesday = config.find_resource("room-a").opening_hours[1]

    assert tuesday.open_time == time(10, 0)
    assert tuesday.close_time == time(16, 30)


def test_build_resources(config_file):
    config = AppConfig.load_from_yaml(config_file)
    resources = {r.resource_id: r for r in config.build_resources()}

    room = resources["room-a"]
    assert room.capacity == 6
    assert room.rates.price_per_hour == Decimal("12.5")
    assert room.rates.day_threshold_hours == 24
    assert room.operating_hours.window_for(date(2025, 6, 2)).format_clock() == "09:00-18:00"
    # Unlisted weekdays are closed
    assert room.operating_hours.window_for(date(2025, 6, 4)) is None
    assert resources["studio"].rates.day_threshold_hours == 8


def test_resource_store_from_config(config_file):
    store = ConfigResourceStore.from_config(AppConfig.load_from_yaml(config_file))

    assert store.get_operating_hours("room-a", 5).closed
    assert store.get_operating_hours("room-a", 0).open_time == time(9, 0)
    assert store.get_operating_hours("missing", 0) is None
    assert store.get_rate_schedule("studio").day_threshold_hours == 8
    assert len(store.list_resources()) == 2


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="config.example.yaml"):
        AppConfig.load_from_yaml(tmp_path / "nope.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("resources: [\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        AppConfig.load_from_yaml(path)


def test_root_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        AppConfig.load_from_yaml(path)


def test_unknown_timezone():
    with pytest.raises(PydanticValidationError):
        AppConfig(timezone="Mars/Olympus_Mons")


def test_unknown_log_level():
    with pytest.raises(PydanticValidationError):
        AppConfig(log_level="chatty")


def test_duplicate_resource_ids():
    resource = {"id": "room-a", "name": "A"}

    with pytest.raises(PydanticValidationError, match="Duplicate resource id"):
        AppConfig(resources=[resource, resource])


def test_unsupported_granularity():
    with pytest.raises(PydanticValidationError):
        AppConfig(defaults={"slot_granularity_minutes": 45})


def test_close_before_open():
    with pytest.raises(PydanticValidationError):
        DayHoursConfig(open="18:00", close="09:00")


def test_unknown_weekday():
    with pytest.raises(PydanticValidationError):
        ResourceConfig(id="x", name="X", opening_hours={"funday": {}})


def test_weekday_configured_twice():
    with pytest.raises(PydanticValidationError):
        ResourceConfig(id="x", name="X", opening_hours={"monday": {}, 0: {}})


def test_negative_price():
    with pytest.raises(PydanticValidationError):
        ResourceConfig(id="x", name="X", price_per_hour=-1)
