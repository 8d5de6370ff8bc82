"""
Main entry point for the Stak driver when run as a module.
"""

import sys

from stak.stak_cli import main

if __name__ == '__main__':
    sys.exit(main())
