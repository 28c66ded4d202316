"""Application package for the quizcraft backend.

This package exposes the service, repository and model modules used by
the FastAPI application. Creators author quizzes, publish them live and
read reports; participants take quizzes through a separate lightweight
session. Individual modules contain the concrete implementations and
documentation.
"""
