from .app import create_app, create_app_from_container

__all__ = ["create_app", "create_app_from_container"]
