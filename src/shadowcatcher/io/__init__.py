# shadowcatcher/src/shadowcatcher/io/__init__.py
