# API Module - Local HTTP backend for the UI shell

from .main import create_app, start_api_server

__all__ = ["create_app", "start_api_server"]
