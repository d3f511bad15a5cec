"""
Neural Network Models for ShipsNet Classification

Immutable model blueprints and the convolutional architectures built
from them for 80x80 RGB ship / no-ship chips.
"""
