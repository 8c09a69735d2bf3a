from devicefleet.analytics.distributions import compute_distributions
from devicefleet.analytics.kpi_metrics import compute_kpi_metrics


def test_empty_fleet_is_all_zero(as_of):
    metrics = compute_kpi_metrics([], as_of)
    assert metrics.total_devices == 0
    assert metrics.upgrade_percentage == 0
    assert metrics.processor_below_spec == 0
    assert set(metrics.os_distribution.values()) == {0}
    assert metrics.ram_distribution == {"under8GB": 0, "8GB": 0, "16GB+": 0}


def test_upgrade_processor_and_ram(make_device, as_of):
    devices = [
        make_device(ram="16GB", processor="Intel Core i7-11th Gen"),
        make_device(ram="4GB", processor="Apple M1", operating_system="macOS Sonoma"),
        make_device(ram="32GB", processor="AMD Ryzen 5 5600", status="Broken"),
        make_device(ram="n/a", processor="Intel Core i5-6th Gen"),
    ]
    metrics = compute_kpi_metrics(devices, as_of)

    assert metrics.upgrade_stats.upgraded == 1
    assert metrics.upgrade_stats.total == 4
    assert metrics.upgrade_percentage == 25
    assert metrics.processor_stats.below_spec == 1
    assert metrics.processor_below_spec == 25
    assert metrics.ram_distribution == {"under8GB": 25, "8GB": 0, "16GB+": 50}


def test_ram_tiers_boundaries(make_device, as_of):
    devices = [make_device(ram="8GB"), make_device(ram="4GB"), make_device(ram="32GB")]
    metrics = compute_kpi_metrics(devices, as_of)
    assert metrics.ram_distribution == {"under8GB": 33, "8GB": 33, "16GB+": 33}


def test_os_distribution_rounds_to_whole_percent(make_device, as_of):
    devices = [
        make_device(operating_system="Windows 11"),
        make_device(operating_system="Windows 10"),
        make_device(operating_system="macOS Ventura"),
    ]
    metrics = compute_kpi_metrics(devices, as_of)
    assert metrics.os_distribution["Windows"] == 67
    assert metrics.os_distribution["macOS"] == 33
    assert metrics.os_distribution["iOS"] == 0
    assert metrics.os_distribution["Unknown"] == 0


def test_distributions(make_device, as_of):
    devices = [
        make_device(department="HR", status="Broken", operating_system="Windows 10"),
        make_device(department="HR", device_type="Desktop", operating_system="Windows 11 Pro"),
        make_device(department="AFC", operating_system="macOS Sonoma"),
    ]
    distributions = compute_distributions(devices, as_of)
    assert distributions.status == {"Broken": 1, "Working": 2}
    assert distributions.device_type == {"Desktop": 1, "Laptop": 2}
    assert distributions.department == {"AFC": 1, "HR": 2}
    assert distributions.os_age_years == {"Windows 10": 10, "macOS Sonoma": 2}


def test_distributions_empty(as_of):
    distributions = compute_distributions([], as_of)
    assert distributions.status == {}
    assert distributions.os_age_years == {}
