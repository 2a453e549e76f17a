"""Module entrypoint for ``python -m pawsync``."""

from pawsync.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
