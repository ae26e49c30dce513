"""
Simple script to simulate a drawer unit polling the server for commands.
Run this to test the server without having the actual ESP32.

Usage: python device_simulator.py [device_id]
"""
import random
import sys
import time

import requests

# Configuration
SERVER_URL = "http://localhost:10000"
DEVICE_ID = "drawer-unit-001"
POLL_INTERVAL = 5  # seconds
FAILURE_RATE = 0.1

def poll_next_command(device_id):
    """Ask the server for the oldest pending command"""
    print("📥 Polling for commands...")

    try:
        response = requests.get(f"{SERVER_URL}/devices/{device_id}/next-command", timeout=10)
    except requests.RequestException as e:
        print(f"❌ Error: {e}")
        return None

    if response.status_code == 204:
        print("   No pending command")
        return None
    if response.status_code != 200:
        print(f"❌ Polling failed: {response.status_code} {response.text}")
        return None

    command = response.json()
    print(f"✅ Received {command['action']} drawer={command.get('drawer')} code={command['code']}")
    return command

def actuate(command):
    """Pretend to drive the drawer motor; returns an error message on failure"""
    time.sleep(0.5)
    if random.random() < FAILURE_RATE:
        return f"drawer {command.get('drawer')} jammed"
    return None

def confirm(command, error=None):
    """Report the outcome, always keyed by the command code"""
    code = command["code"]
    try:
        if error is None:
            response = requests.post(f"{SERVER_URL}/commands/{code}/execute", timeout=10)
        else:
            response = requests.post(
                f"{SERVER_URL}/commands/{code}/fail",
                json={"error_message": error},
                timeout=10,
            )
    except requests.RequestException as e:
        print(f"❌ Error: {e}")
        return

    if response.status_code == 200:
        print(f"   🎯 {response.json()['message']}")
    elif response.status_code == 409:
        # already resolved, e.g. a retried confirmation
        print(f"   ⚠️  Command {code} was already confirmed")
    else:
        print(f"❌ Confirmation failed: {response.status_code} {response.text}")

def main():
    device_id = sys.argv[1] if len(sys.argv) > 1 else DEVICE_ID

    print("=" * 60)
    print("🗄️  Drawer Unit Simulator")
    print("=" * 60)
    print(f"Server: {SERVER_URL}")
    print(f"Device: {device_id}")
    print("-" * 60)

    print("Starting main loop (Ctrl+C to stop)...")
    print("-" * 60)

    try:
        counter = 0
        while True:
            counter += 1
            print(f"\n[Cycle {counter}]")

            command = poll_next_command(device_id)
            if command:
                confirm(command, actuate(command))
                # drain the queue without waiting a full interval
                continue

            time.sleep(POLL_INTERVAL)

    except KeyboardInterrupt:
        print("\n\n⏹️  Stopped by user")
        print("-" * 60)

if __name__ == "__main__":
    main()
