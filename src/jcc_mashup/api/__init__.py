from src.jcc_mashup.api.app import create_app

__all__ = ["create_app"]
