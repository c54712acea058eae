"""
EmotiHome — emotion-driven home automation
Usage: python main.py run [--camera 0]
       python main.py rules list
"""

import sys

from emotihome.cli import main

if __name__ == "__main__":
    sys.exit(main())
