#!/usr/bin/env python3
"""
Local entrypoint for the stress model API.

Use `python3 server.py`; host/port come from UNLOCK_STRESS_HOST / UNLOCK_STRESS_PORT.
"""

from unlock_stress_app.main import app, run


if __name__ == "__main__":
    run()
