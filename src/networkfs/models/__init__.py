"""Data models for the NetworkFilesystem controller."""
