"""
Allow ``python -m pycuboid``.
"""

import sys

from pycuboid.cli import main

sys.exit(main())
