"""
Metrics, early stopping, checkpointing and plotting utilities.
"""
