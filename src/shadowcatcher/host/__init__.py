# shadowcatcher/src/shadowcatcher/host/__init__.py
