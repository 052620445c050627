# database/__init__.py
