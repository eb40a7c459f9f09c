"""
Entry point for running the package as a module: python -m docsort
"""

import sys
from docsort.cli import main

if __name__ == "__main__":
    sys.exit(main())
