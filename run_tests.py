#!/usr/bin/env python
"""
Run all tests for the Vault Club engine, tutorial and services.

Usage (from repo root):
    python run_tests.py
"""

import sys
import os
import unittest

def main():
    # Get the repo root (where this script lives)
    repo_root = os.path.dirname(os.path.abspath(__file__))
    tests_dir = os.path.join(repo_root, "tests")

    if not os.path.isdir(tests_dir):
        print(f"ERROR: Test directory not found at {tests_dir}")
        sys.exit(1)

    sys.path.insert(0, repo_root)

    print("=" * 60)
    print("Running Vault Club Tests...")
    print("=" * 60)
    print()

    suite = unittest.defaultTestLoader.discover(tests_dir, pattern="test_*.py")
    result = unittest.TextTestRunner(verbosity=2).run(suite)

    sys.exit(0 if result.wasSuccessful() else 1)

if __name__ == "__main__":
    main()
