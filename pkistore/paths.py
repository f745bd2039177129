"""
paths.py
========
Single source of truth for all absolute paths in the project.

Every module imports from here instead of computing paths individually,
so the configuration resolves the same way whether the package is run
from a checkout or from an installed copy.
"""

import os

# The directory that contains THIS file (pkistore/)
PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))

CONFIG_PATH = os.path.join(PACKAGE_DIR, "config.json")
