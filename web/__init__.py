from web.app import ArchGraphWebApp, create_app

__all__ = ['ArchGraphWebApp', 'create_app']
