"""
Drive the alarm flow against a running backend without a phone.
Triggers an alarm as if the dispatcher called, optionally posts responses,
then prints the live stats.

Usage:
  python scripts/test/simulate_call.py --number 608101402 --respond 1:TAK 2:NIE
"""

import argparse
import json
import requests
from datetime import datetime

BACKEND_URL = "http://localhost:4000/api/v1"


def trigger(number):
    payload = {"call_phone_number": number,
               "alarm_time": datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")}
    resp = requests.post(f"{BACKEND_URL}/alarm/trigger", json=payload, timeout=10)
    data = resp.json()
    print(f"🚨 trigger {number} → HTTP {resp.status_code}: {data}")
    resp.raise_for_status()
    return data["alarmId"]


def respond(alarm_id, firefighter_id, response_type):
    resp = requests.post(f"{BACKEND_URL}/alarm/{alarm_id}/respond",
                         json={"firefighter_id": firefighter_id, "response_type": response_type},
                         timeout=10)
    body = resp.json()
    summary = body.get("summary", body)
    print(f"✅ ff={firefighter_id} {response_type} → HTTP {resp.status_code}: {summary}")


def show_stats(alarm_id):
    resp = requests.get(f"{BACKEND_URL}/alarm/{alarm_id}/stats", timeout=10)
    print(f"📊 stats alarm {alarm_id} → HTTP {resp.status_code}")
    print(json.dumps(resp.json(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate a dispatcher call and firefighter responses")
    parser.add_argument("--url", default=BACKEND_URL)
    parser.add_argument("--number", default="608101402")
    parser.add_argument("--alarm-id", type=int, help="Reuse an existing alarm instead of triggering")
    parser.add_argument("--respond", nargs="*", default=[], metavar="FF_ID:TAK|NIE")
    args = parser.parse_args()
    BACKEND_URL = args.url.rstrip("/")

    alarm_id = args.alarm_id or trigger(args.number)
    for item in args.respond:
        ff_id, response_type = item.split(":", 1)
        respond(alarm_id, int(ff_id), response_type.upper())
    show_stats(alarm_id)
