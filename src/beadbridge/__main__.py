"""
beadbridge package entry point.

Allows running beadbridge as a module:
    python -m beadbridge
"""

from beadbridge.cli import main

if __name__ == "__main__":
    main()
