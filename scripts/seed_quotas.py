#!/usr/bin/env python3
"""
Premium Quota Seed Script

Creates indexes and inserts the missing plan-level quota templates.
Run: python scripts/seed_quotas.py
"""
import sys
sys.path.insert(0, '.')

from app.db.mongodb import init_mongo_indexes, test_mongo_connection
from app.services.quota_service import QuotaService, DEFAULT_QUOTAS


def main():
    if not test_mongo_connection():
        print("✗ MongoDB not reachable")
        sys.exit(1)

    init_mongo_indexes()
    service = QuotaService()

    print("Starting premium quota seeding...")
    inserted = service.seed_default_quotas()
    print(f"✓ Inserted {inserted} template(s)")

    for plan, quotas in DEFAULT_QUOTAS.items():
        for quota_type, config in quotas.items():
            total = "unlimited" if config["total"] < 0 else config["total"]
            print(f"    {plan.value:<16} {quota_type.value:<20} {total} ({config['period'].value})")

    if service.verify_seeded_quotas():
        print("✓ Seed completed successfully")
    else:
        print("⚠ Template count does not match the defaults")
        sys.exit(1)


if __name__ == "__main__":
    main()
