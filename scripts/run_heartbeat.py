#!/usr/bin/env python3
"""
Standalone status reporter.
Builds the resolver state from configuration and periodically logs memory
size and counters until interrupted.
"""

import os
import sys
from pathlib import Path

# Add the parent directory to sys.path to import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from memo_resolver.core import heartbeat
from memo_resolver.core.config import get_heartbeat_interval
from memo_resolver.core.resolver import build_resolver


def main():
    os.environ.setdefault("HEARTBEAT_ENABLED", "true")

    resolver = build_resolver()
    heartbeat.register_task("memory_status", get_heartbeat_interval(), heartbeat.memory_status_task(resolver))

    try:
        heartbeat.start()
    except KeyboardInterrupt:
        heartbeat.stop()
        print("\n🛑 Heartbeat interrupted by user")


if __name__ == "__main__":
    main()
