#!/usr/bin/env python3
"""
Send sample booking webhooks to a running Salon Recovery API (sandbox platform).
Run the server first: uvicorn salon_recovery.main:app --reload
"""

import json
import os

import requests

BASE_URL = os.getenv("SALON_RECOVERY_URL", "http://127.0.0.1:8000")
HEADERS = {"X-API-Key": os.getenv("API_KEY", "")}


def send_samples():
    print("Sending sample webhooks to Salon Recovery API...\n")

    # 1. Root endpoint
    print("1. Checking root endpoint...")
    response = requests.get(f"{BASE_URL}/")
    print(f"   Status: {response.status_code}")
    print(f"   Version: {response.json()['version']}\n")

    # 2. Cancellation -> rebooking suggestions
    print("2. Sending appointment.cancelled...")
    response = requests.post(
        f"{BASE_URL}/webhooks/sandbox",
        json={
            "eventType": "appointment.cancelled",
            "appointment": {
                "id": "demo-appt-1",
                "customerId": "demo-client-1",
                "serviceId": "service-1",
                "providerId": "provider-2",
                "startTime": "2024-01-25T14:00:00",
                "status": "cancelled",
            },
        },
    )
    data = response.json()
    suggestions = (data.get("result") or {}).get("result", {}).get("suggestions", [])
    print(f"   Status: {response.status_code}, success: {data['success']}")
    for suggestion in suggestions:
        print(f"   - {suggestion['formattedDateTime']} (score {suggestion['score']:.1f})")
    print()

    # 3. Completion -> follow-up sequence
    print("3. Sending appointment.completed...")
    response = requests.post(
        f"{BASE_URL}/webhooks/sandbox",
        json={
            "eventType": "appointment.completed",
            "appointment": {
                "id": "demo-appt-2",
                "customerId": "demo-client-1",
                "serviceId": "service-2",
                "providerId": "provider-1",
                "startTime": "2024-01-25T14:00:00",
                "status": "completed",
            },
        },
    )
    data = response.json()
    print(f"   Status: {response.status_code}, success: {data['success']}")
    print(f"   Result: {json.dumps(data.get('result'), indent=2)[:600]}\n")

    # 4. Scheduled messages
    print("4. Listing scheduled messages...")
    response = requests.get(f"{BASE_URL}/messages", params={"client_id": "demo-client-1"}, headers=HEADERS)
    print(f"   Status: {response.status_code}")
    for message in response.json():
        print(f"   - {message['scheduledTime']} {message['message']['type']}: {message['message']['subject']}")
    print()

    print("Done.")


if __name__ == "__main__":
    try:
        send_samples()
    except requests.exceptions.ConnectionError:
        print("Error: Could not connect to server.")
        print("Please start the server first:")
        print("  uvicorn salon_recovery.main:app --reload")
