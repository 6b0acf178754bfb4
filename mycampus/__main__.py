"""
Package entry point.

Allows running the application via:

    python -m mycampus

This simply forwards execution to mycampus.cli.main().
"""

from mycampus.cli import main

if __name__ == "__main__":
    main()
