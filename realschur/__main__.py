#!/usr/bin/env python3
from realschur.cli import main

if __name__ == "__main__":
    main()
