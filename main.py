#!/usr/bin/env python3
"""
Main entry point for the release tracker on App Engine.
"""

from release_tracker.server import run_server

if __name__ == "__main__":
    # PORT comes from the environment (8080 on GAE, 8000 locally)
    run_server()
