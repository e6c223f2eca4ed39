# schemas/__init__.py
# Record and request models
