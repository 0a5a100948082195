"""
Core models, schema handling, configuration and errors.
"""
