"""BVTC front-end tier: search Bilibili videos and upload them to NetEase Cloud Music."""

__version__ = "0.1.0"
