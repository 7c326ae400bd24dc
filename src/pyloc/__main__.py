"""Allow running pyloc with ``python -m pyloc``."""

import sys

from .cli import main

sys.exit(main())
