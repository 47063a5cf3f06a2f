"""
Data Loader Script - seeds students and attendance through the API.

Reads a JSON file of the form
    {"students": [{...profile...}], "attendance": [{"registerNumber", "date", "status"}]}
posts every student to POST /students, then the attendance marks as one
batch to POST /attendance.

Usage:
    python load_data.py                                  # seed_data.json, default URL
    python load_data.py http://localhost:8000            # Custom API URL
    python load_data.py http://backend:8000 data.json    # Custom URL and file
"""

import json
import sys
import os

import httpx


def main():
    api_url = sys.argv[1] if len(sys.argv) > 1 else os.getenv("API_URL", "http://localhost:8000")
    data_file = sys.argv[2] if len(sys.argv) > 2 else os.path.join(
        os.path.dirname(os.path.abspath(__file__)), "seed_data.json")

    if not os.path.exists(data_file):
        print(f"Error: Could not find {data_file}")
        sys.exit(1)

    print(f"Loading data from: {data_file}")
    with open(data_file, "r") as f:
        seed = json.load(f)

    students = seed.get("students", [])
    marks = seed.get("attendance", [])
    print(f"Found {len(students)} students and {len(marks)} attendance marks")
    print(f"Sending to: {api_url}")
    print()

    added = 0
    skipped = 0
    with httpx.Client(base_url=api_url, timeout=30.0) as client:
        for profile in students:
            resp = client.post("/students", json=profile)
            if resp.status_code == 200:
                added += 1
            elif resp.status_code == 400:
                # Usually the register number already exists from an earlier run
                skipped += 1
                print(f"  skipped {profile.get('registerNumber')}: {resp.json().get('message')}")
            else:
                resp.raise_for_status()

        result = {}
        if marks:
            resp = client.post("/attendance", json={"attendance": marks})
            resp.raise_for_status()
            result = resp.json()

    print("=" * 60)
    print("SEED SUMMARY")
    print("=" * 60)
    print(f"  Students added:        {added}")
    print(f"  Students skipped:      {skipped}")
    print(f"  Marks inserted:        {result.get('inserted', 0)}")
    print(f"  Marks updated:         {result.get('updated', 0)}")
    print(f"  Marks rejected:        {result.get('failed', 0)}")
    print("=" * 60)

    for error in result.get("errors", []):
        print(f"  entry {error['index']} ({error.get('register_number')}): {error['code']} {error['message']}")


if __name__ == "__main__":
    main()
