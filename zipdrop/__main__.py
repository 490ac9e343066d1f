#!/usr/bin/env python3
"""
Entry point for the ZipDrop CLI.

Run with: python -m zipdrop
"""

from .cli import cli

if __name__ == '__main__':
    cli()
