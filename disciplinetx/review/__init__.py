"""
Read-only reports over daily stats and the activity log.
"""
