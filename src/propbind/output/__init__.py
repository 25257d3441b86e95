"""Rich/JSON output helpers.

The CLI renders ServiceResult for humans (Rich tables and trees) or
machines (--json). The formatter layer adapts ServiceResult to the
requested output mode.
"""
