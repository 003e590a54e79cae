# scripts/simulate_chat_session.py
import random
import sys
import time

import requests

BASE_URL = "http://localhost:8000"

SAMPLE_MESSAGES = [
    "hello",
    "what is my balance",
    "how do i pay my water bill",
    "send me my latest statement please",
    "i forgot my password",
    "submit meter reading",
    "can i pay my arrears in instalments",
    "there is a water leak in my street",
    "what are your office hours",
    "thanks bye",
]


def run_session(n=20, base_url=BASE_URL, http=requests, delay=0.05):
    print(f"🚀 Starting chat simulation ({n} messages)...")
    tally = {}

    for i in range(n):
        text = random.choice(SAMPLE_MESSAGES)
        try:
            res = http.post(f"{base_url}/chatbot/message", json={"text": text})
        except requests.RequestException as e:
            print(f"Connection Error: {e}")
            break

        if res.status_code != 200:
            print(f"[{i+1}/{n}] Error: {res.status_code}")
            continue

        data = res.json()
        status = data.get("status")
        tally[status] = tally.get(status, 0) + 1
        if status == "ok":
            print(f"[{i+1}/{n}] {text!r} -> {data['intent']} ({data['confidence']:.2f})")
        else:
            print(f"[{i+1}/{n}] {text!r} -> ⚠️ {status}")

        if delay:
            time.sleep(delay)

    print(f"\n✨ Simulation Complete. {tally}")
    return tally


if __name__ == "__main__":
    try:
        requests.get(f"{BASE_URL}/")
    except requests.RequestException:
        print("❌ Server not running!")
        sys.exit(1)

    run_session()
