#!/usr/bin/env python3
"""Build the navigation site from the current directory: ``python build.py [build options]``."""
from __future__ import annotations

import sys

from dove.cli import main

if __name__ == "__main__":
    sys.exit(main(["build", *sys.argv[1:]]))
