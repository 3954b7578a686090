"""
Serving Module

HTTP access to the replenishment engine.
"""
