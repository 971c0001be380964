"""
Shared service utilities.

- http.py - pre-configured ``requests.Session`` (retry + default timeout)
"""
