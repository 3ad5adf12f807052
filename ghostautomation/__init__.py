"""
Ghost Automation - Content Pipeline Kernel

Moves candidate products from discovery through scoring, script planning,
compliance-gated review, publication and lead attribution.
"""

__version__ = "0.1.0"
__author__ = "Ghost Automation Team"
