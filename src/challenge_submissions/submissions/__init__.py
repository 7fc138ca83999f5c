"""
Challenge submission ingestion.

Uploads arrive as multipart bodies holding a JSON metadata part and a ZIP
archive part. ``multipart`` frames the body, ``decoders`` turns parts into
submission fields, ``pipeline`` chains the stages and ``router`` exposes the
HTTP endpoints.
"""
