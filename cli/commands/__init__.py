"""
NFTMint CLI Commands Package

Command modules for the NFTMint CLI.
"""

__all__ = ['mint', 'gallery', 'config']
