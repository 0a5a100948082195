"""
logferry: loads policy-transformed log objects from object storage into
an analytical warehouse.
"""

__version__ = "0.1.0"
