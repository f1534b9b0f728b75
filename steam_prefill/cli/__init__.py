"""
Command-line interface and console output.
"""
