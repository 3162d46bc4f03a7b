"""Allow ``python -m stepcode``."""

from stepcode.cli import main

if __name__ == "__main__":
    main()
