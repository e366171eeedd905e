"""
Application layer

Use cases that orchestrate the domain and infrastructure.
"""
