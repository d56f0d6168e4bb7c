"""Put the repository root on ``sys.path`` so ``teambuilder_bot`` imports
without an editable install."""

import os
import sys

ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)
