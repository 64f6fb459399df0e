"""Module entry point: ``python -m loadmerge``."""

from loadmerge.cli import main

if __name__ == "__main__":
    main()
