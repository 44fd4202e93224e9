"""Entry point for ``python -m calc_conquer`` and the ``calc-conquer`` script."""

from __future__ import annotations

from .app import run


def main() -> int:
    return run()


if __name__ == "__main__":
    raise SystemExit(main())
