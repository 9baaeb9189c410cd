"""
Client services.

This module contains the client that connects to the clustering server and
routes pushed partial results to their tasks.
"""
