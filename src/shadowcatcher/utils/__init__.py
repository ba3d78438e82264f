# shadowcatcher/src/shadowcatcher/utils/__init__.py
