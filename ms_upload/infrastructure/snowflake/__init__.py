"""
Snowflake persistence for video metadata.
"""
