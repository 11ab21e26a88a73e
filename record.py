#!/usr/bin/env python3
"""
Convenience entry point for StarSim recording.

Usage:
    python record.py --preset tiny_orbits    # Start new recording
    python record.py --resume tiny_orbits    # Resume interrupted recording
    python record.py --status tiny_orbits    # Check recording status
    python record.py --list                  # List all recordings
"""

from tools.record import main

if __name__ == "__main__":
    main()
