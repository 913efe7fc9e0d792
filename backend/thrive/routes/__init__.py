# backend/thrive/routes/__init__.py
