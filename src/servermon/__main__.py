"""Allow ``python -m servermon``."""

from servermon.main import run

if __name__ == "__main__":
    run()
