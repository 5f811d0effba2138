#!/usr/bin/env python3
"""
Send a sample sync payload to a running server, the way the mobile app does,
then print the resulting steps history and stats.

Usage:
    python scripts/send_sample_sync.py [base_url] [user_id]
"""

import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone

import httpx


def build_payload(user_id: str) -> dict:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    start = now - timedelta(hours=2)
    return {
        "userId": user_id,
        "dailySteps": {
            "totalSteps": 8421,
            "date": now.date().isoformat(),
            "lastUpdated": now.isoformat(),
        },
        "workouts": [
            {
                "id": f"{user_id}-run-{start:%Y%m%d%H%M}",
                "workoutType": "running",
                "activeCalories": 312.4,
                "durationMinutes": 31.5,
                "startTime": start.isoformat(),
                "endTime": (start + timedelta(minutes=31, seconds=30)).isoformat(),
                "distance": 5.02,
                "averageHeartRate": 148,
                "peakHeartRate": 172,
            }
        ],
        "timestamp": now.isoformat(),
    }


async def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000"
    user_id = sys.argv[2] if len(sys.argv) > 2 else "demo-user"

    async with httpx.AsyncClient(base_url=base_url, timeout=30.0) as client:
        resp = await client.post("/api/health/sync", json=build_payload(user_id))
        print(f"POST /api/health/sync -> {resp.status_code}")
        print(json.dumps(resp.json(), indent=2))

        for path in (f"/api/health/steps/{user_id}", f"/api/health/stats/{user_id}"):
            resp = await client.get(path)
            print(f"\nGET {path} -> {resp.status_code}")
            print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    asyncio.run(main())
