#!/usr/bin/env python3
"""
Crisis Engine - Main Runner

Local runner for demonstrating the stress detection and crisis
response pipeline.

Usage:
    python main.py demo          # Simulated timeline, one tick per step
    python main.py scenarios     # Walk through the reference scenarios
    python main.py monitor       # Live asyncio monitor with synthetic input
    python main.py config        # Show the config resolved from the environment
"""

import json
import asyncio
import logging
import argparse
import random
from datetime import datetime, timedelta

from crisis_engine import (
    CrisisDetectionEngine,
    CrisisEvent,
    CrisisMonitor,
    InMemoryPreferenceStore,
    load_config_from_env,
)


def print_header(text: str):
    """Print a formatted header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def print_section(text: str):
    """Print a formatted section header."""
    print(f"\n--- {text} ---")


def print_tick(engine: CrisisDetectionEngine, label: str):
    state = engine.crisis_state
    triggers = ", ".join(t.trigger_type.value for t in state.triggers) or "none"
    print(f"\n[{label}]")
    print(f"  Stress: {engine.overall_stress_level:.2f} ({engine.crisis_severity.value})")
    print(f"  In crisis: {state.is_in_crisis}  episodes: {state.previous_episodes}")
    print(f"  Triggers: {triggers}")
    print(f"  Trend: {engine.stress_metrics.trend.value}")


def run_demo():
    """Replay a scripted timeline against a fake clock."""
    print_header("Crisis Engine Demo - Stress Detection")

    store = InMemoryPreferenceStore()
    start = datetime.now()
    engine = CrisisDetectionEngine(store, {"sensitivity": "medium"}, current_time=start)
    engine.register_callback(
        CrisisEvent.EMERGENCY_ACTIVATED,
        lambda e: print("  → Emergency mode activated")
    )

    t = start

    print_section("Calm browsing")
    for _ in range(4):
        t += timedelta(seconds=2)
        engine.track_click(t)
    engine.evaluate(t)
    print_tick(engine, "tick 1")

    print_section("Errors and help requests")
    for _ in range(3):
        t += timedelta(seconds=3)
        engine.track_error(t)
    engine.track_help_request(t)
    engine.evaluate(t)
    print_tick(engine, "tick 2")

    print_section("Pain spike and erratic clicking")
    engine.update_pain_level(10)
    for gap in (0.1, 0.2, 1.5, 0.1, 2.5, 0.2, 0.1, 3.0):
        t += timedelta(seconds=gap)
        engine.track_click(t)
    for _ in range(5):
        engine.track_error(t)
    engine.evaluate(t)
    print_tick(engine, "tick 3")

    print_section("Preferences")
    print(json.dumps(store.preferences, indent=2))

    print_section("Resolution")
    session = engine.resolve_crisis("resolved", "Took a break")
    if session:
        print(f"  Session {session.id} closed after {session.duration:.0f}s")
        print(f"  User actions: {session.user_actions}")
    engine.deactivate_emergency_mode()
    print(json.dumps(store.preferences, indent=2))


def run_scenarios():
    """Print the reference scenarios with their observed outcomes."""
    print_header("Reference Scenarios")
    now = datetime.now()

    print_section("A: no input")
    engine = CrisisDetectionEngine(InMemoryPreferenceStore(), current_time=now)
    engine.evaluate(now)
    print_tick(engine, "A")

    print_section("B: pain 9 at medium sensitivity")
    engine = CrisisDetectionEngine(InMemoryPreferenceStore(), {"sensitivity": "medium"}, current_time=now)
    engine.update_pain_level(9)
    engine.evaluate(now)
    print_tick(engine, "B")

    print_section("C: irregular clicking")
    engine = CrisisDetectionEngine(InMemoryPreferenceStore(), current_time=now)
    t = now
    for gap in (0.05, 4.0, 0.1, 3.5, 0.05, 2.0, 0.1, 4.0, 0.05, 3.0, 0.1):
        engine.track_click(t)
        t += timedelta(seconds=gap)
    engine.track_click(t)
    engine.evaluate(t)
    print_tick(engine, "C")

    print_section("D: critical with auto activation")
    store = InMemoryPreferenceStore()
    engine = CrisisDetectionEngine(store, current_time=now)
    engine.update_pain_level(10)
    for _ in range(10):
        engine.track_error(now)
    t = now
    for gap in (0.05, 4.0, 0.1, 3.5, 0.05):
        engine.track_click(t)
        t += timedelta(seconds=gap)
    engine.evaluate(t)
    print_tick(engine, "D")
    print(f"  Preferences: {store.preferences}")

    print_section("E: resolve")
    session = engine.resolve_crisis("resolved")
    print_tick(engine, "E")
    print(f"  Closed session end_time: {session.end_time.isoformat() if session else None}")


async def run_monitor(seconds: float, interval: float):
    """Run the asyncio monitor against synthetic clicks and errors."""
    print_header("Live Monitor")
    store = InMemoryPreferenceStore()
    engine = CrisisDetectionEngine(store, load_config_from_env())
    engine.register_callback(
        CrisisEvent.CRISIS_STARTED,
        lambda e: print(f"  → Crisis started ({e.crisis_severity.value})")
    )

    async with CrisisMonitor(engine, interval_seconds=interval) as monitor:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + seconds
        while loop.time() < deadline:
            engine.track_click()
            if random.random() < 0.3:
                engine.track_error()
            await asyncio.sleep(random.uniform(0.01, 0.4))

    print(f"\nTicks run: {monitor.tick_count}")
    print(json.dumps(engine.to_dict(), indent=2))


def run_config():
    print_header("Resolved Configuration")
    print(load_config_from_env().model_dump_json(indent=2))


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Crisis Engine - Stress Detection & Adaptive Response"
    )
    parser.add_argument(
        "mode",
        nargs="?",
        default="demo",
        choices=["demo", "scenarios", "monitor", "config"],
        help="Run mode: demo, scenarios, monitor, or config"
    )
    parser.add_argument(
        "--seconds",
        type=float,
        default=5.0,
        help="How long the live monitor runs"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Monitor tick interval in seconds"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.mode == "demo":
        run_demo()
    elif args.mode == "scenarios":
        run_scenarios()
    elif args.mode == "monitor":
        asyncio.run(run_monitor(args.seconds, args.interval))
    elif args.mode == "config":
        run_config()


if __name__ == "__main__":
    main()
