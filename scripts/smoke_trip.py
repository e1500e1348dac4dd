"""
End-to-end smoke test against a running server.

Requires the seeded users (driver_backend/seed_users.py):
1. Health check
2. Dispatcher creates and assigns a trip
3. Driver walks it through every phase, posting a GPS fix on the way
4. Dispatcher reads the live view; driver reads notifications
"""

import sys
import time

import httpx

BASE_URL = "http://127.0.0.1:8000"
API_PREFIX = "/v1"


def print_step(step, msg):
    print(f"[{step}] {msg}")


def fail(msg):
    print(f"❌ FAILURE: {msg}")
    sys.exit(1)


def success(msg):
    print(f"✅ {msg}")


def wait_for_server(client, retries=10, delay=2):
    for _ in range(retries):
        try:
            if client.get("/health").status_code == 200:
                return True
        except httpx.ConnectError:
            pass
        time.sleep(delay)
    return False


def login(client, username, password):
    resp = client.post(f"{API_PREFIX}/auth/login", json={"username": username, "password": password})
    if resp.status_code != 200:
        fail(f"Login as {username} failed: {resp.status_code} {resp.text}")
    body = resp.json()
    return {"Authorization": f"Bearer {body['access_token']}"}, body["user_id"]


def expect(resp, code, what):
    if resp.status_code != code:
        fail(f"{what}: expected {code}, got {resp.status_code} {resp.text}")
    return resp.json()


def main():
    print("🚀 Starting trip smoke test...")

    with httpx.Client(base_url=BASE_URL, timeout=10.0) as client:
        print_step("HEALTH", "Waiting for /health...")
        if not wait_for_server(client):
            fail("Server did not become healthy")
        success("Server is up")

        dispatcher_headers, _ = login(client, "dispatcher", "dispatch123")
        driver_headers, driver_id = login(client, "driver", "driver123")
        success("Logged in as dispatcher and driver")

        print_step("DISPATCH", "Creating and assigning a trip...")
        trip = expect(client.post(
            f"{API_PREFIX}/dispatcher/trips",
            json={"pickup_address": "100 Main St, Springfield", "destination_address": "City Hospital, Springfield"},
            headers=dispatcher_headers,
        ), 201, "Create trip")
        trip_id = trip["id"]
        expect(client.post(
            f"{API_PREFIX}/dispatcher/trips/{trip_id}/assign",
            json={"driver_id": driver_id},
            headers=dispatcher_headers,
        ), 200, "Assign trip")
        success(f"Trip {trip_id} assigned to driver {driver_id}")

        print_step("DRIVER", "Walking the trip through its phases...")
        for action in ("accept", "start"):
            expect(client.post(f"{API_PREFIX}/driver/trips/{trip_id}/{action}", headers=driver_headers), 200, action)

        recorded = expect(client.post(
            f"{API_PREFIX}/driver/trips/{trip_id}/location",
            json={"latitude": 39.7817, "longitude": -89.6501, "heading": 90.0, "speed": 11.2},
            headers=driver_headers,
        ), 200, "Record location")
        if not recorded["recorded"]:
            fail(f"Location not recorded: {recorded}")

        for action in ("arrive", "start-ride", "complete"):
            result = expect(client.post(f"{API_PREFIX}/driver/trips/{trip_id}/{action}", headers=driver_headers), 200, action)
        if result["trip"]["status"] != "completed":
            fail(f"Trip not completed: {result['trip']}")
        success("Trip completed")

        print_step("VERIFY", "Checking live view and notifications...")
        live = expect(client.get(f"{API_PREFIX}/dispatcher/trips/{trip_id}/live", headers=dispatcher_headers), 200, "Live view")
        success(f"Live view has {len(live['locations'])} location sample(s)")

        notifications = expect(client.get(f"{API_PREFIX}/notifications", headers=driver_headers), 200, "Notifications")
        success(f"Driver has {len(notifications['notifications'])} notification(s)")

    success("Smoke test passed!")


if __name__ == "__main__":
    main()
