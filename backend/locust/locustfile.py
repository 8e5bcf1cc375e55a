"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags contention   # Many users racing for few spots
  locust -f locustfile.py --tags browse       # Listing + lot reads (cache)
  locust -f locustfile.py --tags edge         # Bad input
  locust -f locustfile.py                     # All tests

Tokens are minted locally with the same shared secret the API verifies
(SECRET_KEY), standing in for the identity provider.

Target location: LOCUST_LOCATION_ID (default 1). Seed it first:
  python -m parkspot.db.seed
"""

import os
import random
import uuid

import jwt
from locust import HttpUser, task, between, tag

SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key-change-in-production")
LOCATION_ID = int(os.getenv("LOCUST_LOCATION_ID", "1"))
HOT_SPOTS = [1, 2, 3, 4, 5]


def mint_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, SECRET_KEY, algorithm="HS256")


def booking_path(spot_number: int) -> str:
    return f"/api/v1/locations/{LOCATION_ID}/spots/{spot_number}/booking"


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - hundreds of users -> 5 spots

    Run: locust -f locustfile.py --tags contention -u 200 -r 50 --run-time 30s

    After test, verify every hot spot has at most one owner and that the
    occupancy invariant held:
      SELECT spot_number, booked_by FROM spots
      WHERE location_id = X AND spot_number <= 5;
      SELECT COUNT(*) FROM spots WHERE is_occupied <> (booked_by IS NOT NULL);  -- 0
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = f"load-{uuid.uuid4().hex[:10]}"
        self.headers = {"Authorization": f"Bearer {mint_token(self.user_id)}"}
        self.holding = set()

    @tag("contention")
    @task(5)
    def book_hot_spot(self):
        spot_number = random.choice(HOT_SPOTS)
        with self.client.post(
            booking_path(spot_number),
            headers=self.headers,
            name="book [hot spot]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                self.holding.add(spot_number)
                resp.success()
            elif resp.status_code == 409:
                # Lost the race: expected outcome, not a failure
                resp.success()
            else:
                resp.failure(f"Unexpected {resp.status_code}")

    @tag("contention")
    @task(2)
    def release_spot(self):
        if not self.holding:
            return
        spot_number = self.holding.pop()
        with self.client.delete(
            booking_path(spot_number),
            headers=self.headers,
            name="cancel [own spot]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Cancel of own spot returned {resp.status_code}")

    @tag("contention")
    @task(1)
    def steal_attempt(self):
        """Cancelling a spot we do not hold must always be refused."""
        spot_number = random.choice([n for n in HOT_SPOTS if n not in self.holding] or HOT_SPOTS)
        if spot_number in self.holding:
            return
        with self.client.delete(
            booking_path(spot_number),
            headers=self.headers,
            name="cancel [not ours]",
            catch_response=True,
        ) as resp:
            if resp.status_code == 403:
                resp.success()
            else:
                resp.failure(f"Non-owner cancel returned {resp.status_code}")


class BrowseUser(HttpUser):
    """
    TEST 2: Read throughput - listing (cached) and lot view (uncached)

    Run: locust -f locustfile.py --tags browse -u 100 -r 20 --run-time 30s
    """
    wait_time = between(0.1, 0.5)

    @tag("browse")
    @task(3)
    def list_locations(self):
        self.client.get("/api/v1/locations/", name="list locations")

    @tag("browse")
    @task(2)
    def view_lot(self):
        self.client.get(f"/api/v1/locations/{LOCATION_ID}", name="view lot")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - unknown spots, missing auth

    Run: locust -f locustfile.py --tags edge -u 10 -r 5 --run-time 15s
    """
    wait_time = between(0.5, 1)

    def on_start(self):
        self.headers = {"Authorization": f"Bearer {mint_token('edge-user')}"}

    @tag("edge")
    @task
    def book_unknown_spot(self):
        with self.client.post(
            booking_path(100000), headers=self.headers, name="book [unknown]", catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()
            else:
                resp.failure(f"Expected 404, got {resp.status_code}")

    @tag("edge")
    @task
    def book_without_token(self):
        with self.client.post(booking_path(1), name="book [no auth]", catch_response=True) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
