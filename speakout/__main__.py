"""
Entry point for the speakout package when run as a module.

This allows the package to be executed directly with:
    python -m speakout
"""

from .cli import main

if __name__ == "__main__":
    main()
