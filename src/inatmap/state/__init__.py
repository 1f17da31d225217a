"""State layer.

This package holds the single page-session state object every engine
component reads and mutates. Nothing in it survives a navigation.
"""
