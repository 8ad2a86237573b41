"""
Route modules, all mounted under /upload.
"""
