"""FastAPI application module for SimRec.

This module contains the FastAPI application, route handlers, and API
endpoints for the query service. It loads the latest published training run
and answers similar-item queries by fusing every algorithm's ranking.
"""
