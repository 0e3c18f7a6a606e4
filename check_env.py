#!/usr/bin/env python3
"""Helper script to check and create .env file for the checkout backend."""

from pathlib import Path
import os

SECRET_KEYS = ("MKT_SUPABASE_KEY", "MKT_MAPBOX_ACCESS_TOKEN")

TEMPLATE = """# Supabase Configuration (Required unless MKT_STORE_BACKEND=memory)
# Get these from: https://supabase.com/dashboard → Your Project → Settings → API
MKT_SUPABASE_URL=https://your-project-id.supabase.co
MKT_SUPABASE_KEY=your-service-role-key-here
MKT_STORE_BACKEND=supabase

# Mapbox Directions Matrix (Required for routed delivery fees)
MKT_MAPBOX_ACCESS_TOKEN=your-mapbox-token-here
MKT_MAPBOX_PROFILE=driving

# API Configuration
MKT_API_PREFIX=/api
MKT_LOG_LEVEL=INFO
MKT_SERVER_HOST=0.0.0.0
MKT_SERVER_PORT=8000
# MKT_FRONTEND_ALLOWED_ORIGINS - Leave commented to use defaults
# If you need to override, use JSON array format: ["http://localhost:5173","http://127.0.0.1:5173"]
# Or comma-separated: http://localhost:5173,http://127.0.0.1:5173
"""


def _mask(line):
    name, value = line.split("=", 1)
    value = value.strip()
    if len(value) > 20:
        return f"{name}={value[:10]}...{value[-6:]}"
    return line


def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Checkout Backend Environment Checker")
    print("=" * 60)
    print()

    if env_file.exists():
        print(f"✅ Found .env file at: {env_file}")
        print()
        print("Current contents:")
        print("-" * 60)
        with open(env_file, "r", encoding="utf-8") as f:
            for line in f.read().split("\n"):
                if "=" in line and line.split("=", 1)[0].strip() in SECRET_KEYS:
                    print(_mask(line))
                else:
                    print(line)
        print("-" * 60)
        print()
    else:
        print(f"❌ .env file NOT found at: {env_file}")
        print()
        print("Creating template .env file...")
        with open(env_file, "w", encoding="utf-8") as f:
            f.write(TEMPLATE)
        print(f"✅ Created .env file at: {env_file}")
        print()
        print("⚠️  Please edit .env and add your Supabase and Mapbox credentials!")
        print()
        return

    print("Checking environment variables...")
    print()
    for name in ("MKT_SUPABASE_URL", *SECRET_KEYS):
        if os.getenv(name):
            print(f"✅ {name} (from environment) is set")
        else:
            print(f"❌ {name} not found in environment")
    print()

    print("Testing config loading...")
    print()
    try:
        import sys
        sys.path.insert(0, str(project_root / "src"))
        from marketplace.config import settings

        print(f"   Store backend: {settings.store_backend}")
        print(f"   Mapbox profile: {settings.mapbox_profile}")
        print(f"   Settings cache TTL: {settings.settings_cache_ttl_seconds}s")
        print()

        problems = []
        if settings.store_backend == "supabase" and not (settings.supabase_url and settings.supabase_key):
            problems.append("Supabase is NOT configured (MKT_SUPABASE_URL / MKT_SUPABASE_KEY)")
        if not settings.mapbox_access_token:
            problems.append("Mapbox token is missing; checkout will use the fallback fee or block")

        print("=" * 60)
        if problems:
            for problem in problems:
                print(f"❌ {problem}")
            print("=" * 60)
            print()
            print("Troubleshooting:")
            print("1. Make sure .env file exists in project root")
            print("2. Make sure variables start with MKT_ prefix")
            print("3. Make sure there are no spaces around = sign")
            print("4. Restart backend after editing .env")
        else:
            print("✅ SUCCESS: Backend is configured!")
            print("=" * 60)
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print()
        print("Make sure you're running this from the project root directory")


if __name__ == "__main__":
    main()
