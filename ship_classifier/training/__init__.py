"""
Training loop for ShipsNet models.
"""
