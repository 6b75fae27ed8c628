"""
Shared test configuration.

Puts the project root on sys.path so http_server and countapi import without installing.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
