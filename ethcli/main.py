#!/usr/bin/env python3
"""
ethcli
Entry point for ``python -m ethcli.main``
"""
from .cli import main

if __name__ == "__main__":
    main()
