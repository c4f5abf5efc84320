from fastapi.requests import HTTPConnection

from app.services.collab_system import CollabSystem


def get_collab_system(conn: HTTPConnection) -> CollabSystem:
    return conn.app.state.collab_system
