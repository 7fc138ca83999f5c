"""
Challenge submissions service.

Accepts multipart code submissions for coding challenges, authenticates the
uploader by API key, persists the decoded submission and serves the stored
archive back for download.
"""

__version__ = "1.0.0"
