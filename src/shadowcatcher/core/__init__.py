# shadowcatcher/src/shadowcatcher/core/__init__.py
