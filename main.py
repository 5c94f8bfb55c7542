#!/usr/bin/env python3
"""
IriQ Node - Raspberry Pi irrigation controller

Run from a checkout with: python main.py
(SIMULATE_HARDWARE=true on machines without the relay board.)
"""

from iriq_node.__main__ import main

if __name__ == "__main__":
    main()
