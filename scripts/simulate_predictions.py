# scripts/simulate_predictions.py
import random
import sys
import time

import requests

BASE_URL = "http://localhost:8000"


def generate_profile():
    return {
        "gwa": round(random.uniform(1.0, 3.0), 2),
        "annual_family_income": random.choice([80000, 150000, 250000, 400000]),
        "classification": random.choice(["Freshman", "Sophomore", "Junior", "Senior"]),
        "college": random.choice(["College of Engineering", "College of Science"]),
        "course": random.choice(["BS Computer Science", "BS Civil Engineering", "BS Biology"]),
        "citizenship": "Filipino",
        "st_bracket": random.choice(["Full Discount", "PD80", "No Discount"]),
        "units_enrolled": random.choice([15, 18, 21]),
        "documents": [{"type": "Certificate of Registration", "status": "verified"}],
    }


def run_simulation(scholarship_id: str, n=20):
    print(f"Simulating {n} probability requests against {scholarship_id}...")

    for i in range(n):
        payload = {"scholarship_id": scholarship_id, "applicant": generate_profile()}
        try:
            res = requests.post(f"{BASE_URL}/predictions/probability", json=payload, timeout=10)
        except requests.RequestException as e:
            print(f"Connection Error: {e}")
            break

        if res.status_code != 200:
            print(f"[{i+1}/{n}] Error: {res.status_code} {res.text}")
            continue

        data = res.json()
        if data["degraded"]:
            print(f"[{i+1}/{n}] degraded: {data['reason']}")
        else:
            print(f"[{i+1}/{n}] p={data['probability']:.3f} {data['confidence']} via {data['model_type']}")
        time.sleep(0.05)

    print("Simulation complete.")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: simulate_predictions.py <scholarship_id> [n]")
        sys.exit(2)
    run_simulation(sys.argv[1], int(sys.argv[2]) if len(sys.argv) > 2 else 20)
