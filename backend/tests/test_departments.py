import pytest

from devicefleet.store.base import DepartmentNotFoundError, DuplicateDepartmentError
from devicefleet.store.departments import DEFAULT_DEPARTMENTS, DepartmentRegistry


def test_initialize_defaults_only_when_empty():
    registry = DepartmentRegistry()
    assert registry.initialize_defaults() == len(DEFAULT_DEPARTMENTS)
    assert registry.active_names() == list(DEFAULT_DEPARTMENTS)
    assert registry.initialize_defaults() == 0


def test_add_upper_cases_name():
    registry = DepartmentRegistry()
    record = registry.add("  finance ")
    assert record.name == "FINANCE"
    assert record.is_active is True
    assert registry.active_names() == ["FINANCE"]


def test_duplicate_is_case_insensitive():
    registry = DepartmentRegistry()
    registry.add("Finance")
    with pytest.raises(DuplicateDepartmentError):
        registry.add("FINANCE")


def test_empty_name_rejected():
    with pytest.raises(ValueError):
        DepartmentRegistry().add("   ")


def test_deactivate_is_soft_delete():
    registry = DepartmentRegistry()
    registry.add("HR")
    registry.add("AFC")
    record = registry.deactivate("hr")
    assert record.is_active is False
    assert registry.active_names() == ["AFC"]
    assert len(registry.all_departments()) == 2


def test_deactivated_name_can_be_added_again():
    registry = DepartmentRegistry()
    registry.add("HR")
    registry.deactivate("HR")
    registry.add("HR")
    assert registry.active_names() == ["HR"]


def test_deactivate_unknown_department():
    registry = DepartmentRegistry()
    with pytest.raises(DepartmentNotFoundError):
        registry.deactivate("GHOST")
    registry.add("HR")
    registry.deactivate("HR")
    with pytest.raises(DepartmentNotFoundError):
        registry.deactivate("HR")
