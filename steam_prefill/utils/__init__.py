"""
Small shared helpers.
"""
