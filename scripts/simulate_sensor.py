"""
Simple simulator: push reefer temperature samples for the seeded transport leg.
Run:
    python scripts/simulate_sensor.py
"""
import os
import time
import random
import requests

API = os.getenv("API", "http://localhost:8000")

def main():
    r = requests.get(f"{API}/api/seed")
    print("Seed:", r.json())

    transport_code = "TRANS-SEED-1"
    for i in range(5):
        body = {
            "temperature_c": round(random.uniform(2, 10), 2),
            "location": {
                "longitude": round(random.uniform(-122.42, -122.27), 4),
                "latitude": round(random.uniform(37.77, 37.80), 4),
            },
        }
        rr = requests.post(f"{API}/api/transport/{transport_code}/temperature", json=body)
        print("sample", i, rr.status_code, rr.text)
        time.sleep(1)

    rr = requests.get(f"{API}/api/trace/BATCH-1234")
    summary = rr.json().get("summary")
    print("trace:", rr.status_code, summary)

if __name__ == "__main__":
    main()
