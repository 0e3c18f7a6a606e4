#!/usr/bin/env python3
"""Verify that the configured Mapbox token can compute a distance matrix."""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root / "src"))

from marketplace.config import settings
from marketplace.errors import RoutingError
from marketplace.models.domain import Coordinate
from marketplace.services.routing.matrix_client import MatrixCache, MatrixClient
from marketplace.services.routing.planner import plan_route


def main():
    print("=" * 60)
    print("Mapbox Matrix Connection Test")
    print("=" * 60)
    print()

    print("1. Checking Mapbox configuration...")
    if not settings.mapbox_access_token:
        print("   [ERROR] Mapbox access token is not configured")
        print("   Please set MKT_MAPBOX_ACCESS_TOKEN in your .env file")
        return 1
    print(f"   [OK] Mapbox Base URL: {settings.mapbox_base_url}")
    print(f"   [OK] Mapbox Profile: {settings.mapbox_profile}")
    print()

    print("2. Requesting a 3-point matrix (customer + 2 shops, Cairo)...")
    client = MatrixClient(cache=MatrixCache())
    points = [
        Coordinate(latitude=30.044420, longitude=31.235712),
        Coordinate(latitude=30.033333, longitude=31.233334),
        Coordinate(latitude=30.050000, longitude=31.250000),
    ]
    try:
        matrix = client.get_matrix(points)
    except RoutingError as e:
        print(f"   [ERROR] Matrix request failed: {e}")
        return 1
    print(f"   [OK] Received {matrix.size}x{matrix.size} distance matrix")
    print(f"   [OK] Sample distance: {matrix.distances[0][1]:.2f} meters")
    print(f"   [OK] Sample duration: {matrix.durations[0][1]:.2f} seconds")
    print()

    print("3. Planning pickup route...")
    route = plan_route(matrix)
    print(f"   [OK] Pickup sequence: {route.pickup_sequence}")
    print(f"   [OK] Total: {route.total_km} km, {route.total_minutes} min")
    print()

    print("=" * 60)
    print("[SUCCESS] Mapbox is connected and working!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
