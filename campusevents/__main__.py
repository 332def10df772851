"""
Package entry point.

Allows running the application via:

    python -m campusevents

This simply forwards execution to campusevents.cli.main().
"""

from campusevents.cli import main

if __name__ == "__main__":
    main()
