# shadowcatcher/src/shadowcatcher/models/__init__.py
