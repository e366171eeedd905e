"""
Domain layer

Value objects, entities, pure pricing services and collaborator interfaces.
"""
