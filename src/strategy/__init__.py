"""
Strategy evaluation: conditions, indicators and signals.
"""
