# pyright: standard

"""elephant-backup: elephant_backup/__main__.py.

Run the command line interface with ``python -m elephant_backup``.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())
