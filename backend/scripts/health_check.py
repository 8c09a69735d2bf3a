from __future__ import annotations

import os
import sys
import traceback
from datetime import date, datetime, timezone


def _bootstrap_path() -> None:
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    if base_dir not in sys.path:
        sys.path.insert(0, base_dir)


def main() -> int:
    _bootstrap_path()
    try:
        from devicefleet.intelligence.cost_model import estimate_device_cost
        from devicefleet.ontology.normalize import classify_os_family, ram_tier
        from devicefleet.pipelines.fleet_summary import build_fleet_summary
        from devicefleet.shared.models import Device

        if classify_os_family("Windows 11") != "Windows":
            raise RuntimeError("OS classification failed.")
        if ram_tier("8GB") != "8GB":
            raise RuntimeError("RAM tier parsing failed.")

        devices = [
            Device(
                id="dev-1",
                department="HR",
                device_type="Desktop",
                operating_system="Windows 10",
                status="Broken",
                created_at=datetime(2014, 3, 1, tzinfo=timezone.utc),
            ),
            Device(
                id="dev-2",
                department="MARKETING",
                device_type="Laptop",
                operating_system="Windows 11",
                ram="16GB",
                created_at=datetime(2023, 6, 1, tzinfo=timezone.utc),
            ),
        ]
        as_of = date(2025, 1, 1)
        estimate = estimate_device_cost(devices[0], as_of)
        if not (estimate.needs_repair and estimate.needs_replacement):
            raise RuntimeError("Cost estimate flags not set.")
        summary = build_fleet_summary(devices, 20000, as_of=as_of)
        if summary.totals.total_devices != len(devices):
            raise RuntimeError("Fleet summary did not count every device.")
    except Exception:
        traceback.print_exc()
        return 1
    print("health_check: ok")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
