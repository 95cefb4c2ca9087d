"""CLI package.

The ``cli`` sub-package contains the Click application and one module
per command group. Library errors are turned into exit codes here and
nowhere else.
"""
from __future__ import annotations
