"""Main entry point when executing fetchgate as a package.

This allows running the package using python -m fetchgate.
"""

from fetchgate.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
