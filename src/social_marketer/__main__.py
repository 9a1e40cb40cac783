"""Allow running as ``python -m social_marketer``."""

from .cli import main

if __name__ == "__main__":
    main()
