"""Small convolutional digit classifier: batching, model, training and inference."""

__version__ = "0.0.1"
