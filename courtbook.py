#!/usr/bin/env python3
"""
Convenience entry point for running courtbook directly.

Usage: python courtbook.py [command] [options]
"""

from courtbook.cli.app import app

if __name__ == "__main__":
    app()
