"""CLI package.

The ``cli`` sub-package contains the Click application and all
command implementations.  It builds the configuration and topology once
per invocation and hands them to the controller.
"""
from __future__ import annotations
