"""
Domain services.

Each service takes a SQLAlchemy session plus its collaborators in the
constructor and owns its commits. They raise ServiceError subclasses and know
nothing about HTTP.
"""
