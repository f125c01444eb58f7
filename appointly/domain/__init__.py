"""
Domain packages

Each domain keeps the router / service / repository / schemas split.
"""
