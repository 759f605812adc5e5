"""
Core configuration, models, errors and validators.
"""
