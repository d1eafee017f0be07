"""Allow running the agent with ``python -m directprint``."""

from directprint.cli import main

if __name__ == "__main__":
    main()
