"""Gateway API resources"""
