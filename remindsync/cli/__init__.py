"""
The RemindSync command-line interface.
"""
