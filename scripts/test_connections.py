#!/usr/bin/env python3
"""
Connection Test Script

Run this to verify MongoDB and the third-party API credentials.
Usage: python scripts/test_connections.py [model ...]
"""
import sys
sys.path.insert(0, '.')

from app.db.mongodb import test_mongo_connection
from app.services.ai_client import AIClient
from app.services.image_host import ImageHostClient
from app.core.config import get_settings


def main(models):
    settings = get_settings()
    print("=" * 50)
    print("MARKETPLACE LEDGER - CONNECTION TEST")
    print("=" * 50)

    # Test MongoDB
    print("\n[1] Testing MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    ✅ MongoDB: CONNECTED")
    else:
        print("    ❌ MongoDB: FAILED")

    # Test AI API (only if API key is set)
    print("\n[2] Testing AI text API...")
    if settings.ai_api_key:
        print(f"    Base URL: {settings.ai_base_url}")
        client = AIClient()
        for model in models or [settings.ai_model]:
            if client.test_connection(model):
                print(f"    ✅ {model}: CONNECTED")
            else:
                print(f"    ❌ {model}: FAILED")
    else:
        print("    ⚠️  AI: API key not configured (skip for now)")

    # Test image host
    print("\n[3] Testing Cloudinary...")
    ok, status, body = ImageHostClient().ping()
    if ok:
        print("    ✅ Cloudinary: CONNECTED")
    elif status == 0:
        print(f"    ⚠️  Cloudinary: {body}")
    else:
        print(f"    ❌ Cloudinary: FAILED ({status}) {body}")

    print("\n" + "=" * 50)
    print("Connection test complete!")
    print("=" * 50)


if __name__ == "__main__":
    main(sys.argv[1:])
