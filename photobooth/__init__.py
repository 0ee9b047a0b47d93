"""
Backend package for the photobooth strip service.

Provides a FastAPI application that stores composited photo strips in
S3-compatible object storage and their metadata in Postgres, with guest
uploads that expire unless an authenticated user claims them.
"""
