"""
Run a delivery from a build script: ``python -m dhl``.
"""

import logging
import sys

from dhl import simply_deliver
from dhl.dhl_exceptions import DhlException


def main() -> int:
    # stdout belongs to cargo directives
    logging.basicConfig(stream=sys.stderr, level=logging.INFO, format="%(message)s")
    try:
        simply_deliver()
    except DhlException as e:
        print(f"dhl: failed to deliver packages: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
