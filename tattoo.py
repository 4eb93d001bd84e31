#!/usr/bin/env python3
"""tattoo.py

Render the branching-tree / zigzag-number illustration to a PNG file.

Run:
  python tattoo.py out.png
"""

import argparse
import logging
import sys

import tattoo_core

logger = logging.getLogger(__name__)


def build_argparser():
    p = argparse.ArgumentParser(
        prog="tattoo",
        description=(
            f"Render the illustration as a {tattoo_core.WIDTH}x"
            f"{tattoo_core.HEIGHT} PNG."
        ),
        add_help=False,
    )
    p.add_argument("output", help="Path to write the PNG image.")
    return p


def setup_logging(level=logging.INFO):
    """Console logging on stderr; stdout only ever carries the usage line."""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(handler)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    # The single argument is taken verbatim, so "-out.png" is a valid path
    # and "--" counts as an argument.
    if len(argv) != 1:
        build_argparser().print_usage(sys.stdout)
        return 1
    output = argv[0]

    try:
        tattoo_core.render_png(output)
    except OSError as e:
        logger.error("File error: %s", e)
        return 2
    return 0


def run():
    setup_logging()
    raise SystemExit(main())


if __name__ == "__main__":
    run()
