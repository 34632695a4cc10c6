#!/usr/bin/env python3
"""
Seed script — creates a small dataset for trying out the food diary.

Creates:
  • a catalog of standard foods (fast + slow, grouped by parent tags)
  • 5 users, each synced onto day 1
  • a few reviews and likes per user

Run after the API is up:
  python scripts/seed_data.py --api-url http://localhost:8000

All IDs are printed so you can use them in curl commands.
"""
import argparse
import json
import random
import time
import urllib.request
import urllib.error
from dataclasses import dataclass
from typing import Any


BASE_USERS = [
    ("minji_eats", "Minji Park"),
    ("jun_bap", "Junho Lee"),
    ("soyeon_k", "Soyeon Kim"),
    ("daniel_y", "Daniel Yoon"),
    ("hana_c", "Hana Choi"),
]

# (name, speed, parents, categories)
CATALOG = [
    ("Kimchi Fried Rice", "fast", ["rice", "kimchi"], ["korean", "rice"]),
    ("Bibimbap", "slow", ["rice"], ["korean", "rice"]),
    ("Ramyeon", "fast", ["noodle"], ["korean", "noodle"]),
    ("Naengmyeon", "slow", ["noodle"], ["korean", "noodle"]),
    ("Jjajangmyeon", "fast", ["noodle"], ["chinese", "noodle"]),
    ("Jjamppong", "slow", ["noodle", "soup"], ["chinese", "noodle"]),
    ("Tteokbokki", "fast", ["rice_cake"], ["korean", "snack"]),
    ("Kimbap", "fast", ["rice", "roll"], ["korean", "rice"]),
    ("Sundubu Jjigae", "slow", ["soup", "tofu"], ["korean", "soup"]),
    ("Kimchi Jjigae", "slow", ["soup", "kimchi"], ["korean", "soup"]),
    ("Samgyeopsal", "slow", ["pork"], ["korean", "meat"]),
    ("Fried Chicken", "fast", ["chicken"], ["korean", "meat"]),
    ("Dakgalbi", "slow", ["chicken"], ["korean", "meat"]),
    ("Tonkatsu", "fast", ["pork", "fried"], ["japanese", "meat"]),
    ("Sushi", "slow", ["fish", "rice"], ["japanese", "rice"]),
    ("Udon", "fast", ["noodle"], ["japanese", "noodle"]),
    ("Pizza", "fast", ["bread", "cheese"], ["western"]),
    ("Hamburger", "fast", ["bread", "beef"], ["western", "meat"]),
    ("Pasta", "slow", ["pasta"], ["western", "noodle"]),
    ("Salad", "fast", ["vegetable"], ["western", "healthy"]),
    ("Pho", "slow", ["noodle", "soup"], ["vietnamese", "noodle"]),
    ("Curry Rice", "fast", ["rice", "curry"], ["japanese", "rice"]),
    ("Mandu", "fast", ["dumpling"], ["korean", "snack"]),
    ("Galbitang", "slow", ["soup", "beef"], ["korean", "soup"]),
]

MEAL_TIMES = ["breakfast", "lunch", "dinner", "snack"]
COMMENTS = ["So good", "Too salty", "Would eat again", "Perfect after a long day", "Just okay"]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(
            url, data=body, headers={"Content-Type": "application/json"}, method=method
        )
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                raw = resp.read()
                return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as e:
            body = e.read().decode()
            print(f"  HTTP {e.code} on {method} {path}: {body}")
            return {}

    def post(self, path: str, data: Any = None) -> Any:
        return self._send("POST", path, data)

    def get(self, path: str) -> Any:
        return self._send("GET", path)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for i in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except Exception:
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    # ── Create catalog ───────────────────────────────────────────────────
    print("Creating catalog foods...")
    foods = client.post(
        "/foods/standard",
        [
            {
                "name": name,
                "image_url": f"https://img.example.com/{name.lower().replace(' ', '-')}.png",
                "speed": speed,
                "parents": parents,
                "categories": categories,
            }
            for name, speed, parents, categories in CATALOG
        ],
    ) or []
    print(f"  ✓ {len(foods)} foods created")

    # ── Create users ─────────────────────────────────────────────────────
    print("\nCreating users...")
    user_ids: list[str] = []
    for username, display_name in BASE_USERS:
        result = client.post("/users/", {"username": username, "display_name": display_name})
        uid = result.get("user_id", "")
        if uid:
            client.post(f"/users/{uid}/sync")   # opens week 1
            user_ids.append(uid)
            print(f"  ✓ {username} ({uid})")
        else:
            print(f"  ✗ Failed to create {username}")

    if not user_ids:
        print("No users created — aborting")
        return

    # ── Reviews and likes ────────────────────────────────────────────────
    print("\nAdding reviews and likes...")
    reviews = likes = 0
    for user_id in user_ids:
        for food in random.sample(foods, k=min(3, len(foods))):
            result = client.post(
                "/reviews/",
                {
                    "user_id": user_id,
                    "name": food["name"],
                    "foods": [
                        {"food_id": food["food_id"], "food_name": food["name"], "type": "standard"}
                    ],
                    "meal_time": random.choice(MEAL_TIMES),
                    "comment": random.choice(COMMENTS),
                    "rating": random.randint(2, 5),
                },
            )
            if result.get("review_id"):
                reviews += 1
        for food in random.sample(foods, k=min(2, len(foods))):
            client.post(f"/foods/{food['food_id']}/like", {"user_id": user_id})
            likes += 1
    print(f"  ✓ {reviews} reviews, {likes} likes added")

    # ── Print summary ─────────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = user_ids[0]
    print(f"# Get the feed for user '{BASE_USERS[0][0]}':")
    print(f"  curl -s '{api_url}/feed/?user_id={u}&speed=fast&count=3' | python3 -m json.tool\n")
    print(f"# Sync day/week:")
    print(f"  curl -s -X POST '{api_url}/users/{u}/sync' | python3 -m json.tool\n")
    print(f"# Weekly progress:")
    print(f"  curl -s '{api_url}/users/{u}/weekly-progress' | python3 -m json.tool\n")
    print(f"# Check Jaeger traces: http://localhost:16686")
    print(f"# Check Prometheus: http://localhost:9090")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Food Diary API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
